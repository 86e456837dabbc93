"""
布局字符串有限状态 token 化回归测试（不涉及音名解析）。

定位：
- token 化与八度推断分开测：这里只检查“切分 + 定界符”是否符合转移表。
- 收尾符只结束自己的定界符；开启符总是先把未完成的裸 token 结束掉。

用法：
  python scripts/test_layout_tokenizer.py
"""

from __future__ import annotations

from pathlib import Path
import sys


REPO_ROOT = Path(__file__).resolve().parents[1]


def _ensure_backend_src_on_path(repo_root: Path) -> None:
    src_dir = repo_root / "backend" / "src"
    if not src_dir.exists():
        raise RuntimeError(f"找不到 backend/src：{src_dir}")
    if str(src_dir) not in sys.path:
        sys.path.insert(0, str(src_dir))


_ensure_backend_src_on_path(REPO_ROOT)

from panlayout import parse_layout  # noqa: E402
from panlayout.layout_text import (  # noqa: E402
    TRANSITIONS,
    NoteRole,
    _CharClass,
    TokenizerState,
    classify_token,
    tokenize_layout_notes,
)


def test_plain_separators() -> None:
    assert tokenize_layout_notes("A-Bb C") == ["A", "Bb", "C"]
    assert tokenize_layout_notes("-A--Bb-") == ["A", "Bb"]
    assert tokenize_layout_notes("") == []


def test_delimited_tokens_keep_delimiters() -> None:
    assert tokenize_layout_notes("(F)-(G)-A-[D]") == ["(F)", "(G)", "A", "[D]"]
    assert tokenize_layout_notes("[D]-(E)") == ["[D]", "(E)"]


def test_opening_delimiter_flushes_plain_token() -> None:
    assert tokenize_layout_notes("A(G)") == ["A", "(G)"]
    assert tokenize_layout_notes("C[D]E") == ["C", "[D]", "E"]


def test_separators_inside_delimiters_are_content() -> None:
    assert tokenize_layout_notes("(G 3)-A") == ["(G 3)", "A"]
    assert tokenize_layout_notes("[D-5]") == ["[D-5]"]


def test_closer_only_exits_its_own_state() -> None:
    # `]` 在括号内只收尾 token，不离开 IN_PARENS
    assert tokenize_layout_notes("(G]-A)") == ["(G]", "-A)"]
    assert TRANSITIONS[(TokenizerState.IN_PARENS, _CharClass.CLOSE_BRACKET)][1] is TokenizerState.IN_PARENS


def test_opener_inside_brackets_switches_to_parens() -> None:
    # 方括号内遇到 `(`：结束残缺的 `[`，转入 IN_PARENS；之后的 `]` 在 PLAIN 中只收尾
    assert tokenize_layout_notes("[(G)-A]") == ["[", "(G)", "A]"]
    assert TRANSITIONS[(TokenizerState.IN_BRACKETS, _CharClass.OPEN_PAREN)][1] is TokenizerState.IN_PARENS
    assert [n.name for n in parse_layout("D/[(G)-A]")] == ["D3", "G3"]


def test_unterminated_delimiter() -> None:
    assert tokenize_layout_notes("A-(G") == ["A", "(G"]
    assert classify_token("(G") == (NoteRole.TONAL, "(G")


def test_transition_table_is_total() -> None:
    states = {s for s, _ in TRANSITIONS}
    classes = {c for _, c in TRANSITIONS}
    assert states == set(TokenizerState)
    assert len(TRANSITIONS) == len(states) * len(classes)


def test_classify_token() -> None:
    assert classify_token("(G3)") == (NoteRole.BOTTOM, "G3")
    assert classify_token("[D]") == (NoteRole.MUTANT, "D")
    assert classify_token("Bb") == (NoteRole.TONAL, "Bb")


def main() -> None:
    test_plain_separators()
    test_delimited_tokens_keep_delimiters()
    test_opening_delimiter_flushes_plain_token()
    test_separators_inside_delimiters_are_content()
    test_closer_only_exits_its_own_state()
    test_opener_inside_brackets_switches_to_parens()
    test_unterminated_delimiter()
    test_transition_table_is_total()
    test_classify_token()
    print("[OK] layout tokenizer: FSM transitions and delimiter handling")


if __name__ == "__main__":
    main()
