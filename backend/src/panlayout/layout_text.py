"""
布局字符串（layout text）解析：`"D/(F)-(G)-A-Bb-C-D-E-F-G-A-C-[D]_"` → 带角色与八度的音符序列。

定位：
- 这是配置器的唯一“谱面真源”解析器：渲染（几何）、可行性判定、定价都只消费本模块的输出。
- 纯函数，无 I/O，无共享状态；同一输入永远得到同一输出。

语法：
- `<ding>/<token><sep><token>...<terminator>?`
- `<sep>` 为 `-` 或空格；`<terminator>` 为可选的结尾 `_`
- token：裸音名 → tonal；`( )` 包裹 → bottom；`[ ]` 包裹 → mutant；八度数字可省略

八度推断：
- tonal/mutant 共用一条基线，bottom 单独一条基线，两者都以 ding 的八度为起点。
- 无数字的 tonal/mutant：第一个沿用基线；之后若 pitch index ≤ 上一个 tonal/mutant 的 index，基线 +1。
- 带数字的 token 直接重置所属基线（以及 tonal/mutant 的“上一个 index”），不触发 +1 规则。

失败语义：
- 缺少 `/`、根音无法解析、或最终只有 ding：抛 ParseError（调用方视为“配置尚未有效”）。
- 音符段内无法识别的 token 静默跳过（只写 DEBUG 日志）。这是与历史配置兼容的容错策略，不要收紧为严格拒绝。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from enum import Enum

from .pitch import NOTE_NAMES, parse_pitch_token, pitch_to_midi


logger = logging.getLogger(__name__)

DEFAULT_DING_OCTAVE = 3
MIN_DING_OCTAVE = 1
MAX_OCTAVE = 9
ROOT_SEPARATOR = "/"
TOKEN_SEPARATORS = frozenset({"-", " "})
TERMINATOR = "_"


class NoteRole(str, Enum):
    DING = "ding"
    TONAL = "tonal"
    MUTANT = "mutant"
    BOTTOM = "bottom"


@dataclass(frozen=True)
class Note:
    """音符：pitch class（升号形式）+ 八度 + 角色。"""

    pitch_class: str
    octave: int
    role: NoteRole

    @property
    def name(self) -> str:
        return f"{self.pitch_class}{self.octave}"

    @property
    def pitch_index(self) -> int:
        return NOTE_NAMES.index(self.pitch_class)

    def to_midi(self) -> int:
        return pitch_to_midi(self.pitch_class, self.octave)


NoteSequence = tuple[Note, ...]


class ParseError(ValueError):
    """布局字符串无法解析为有效的音符序列。"""

    def __init__(self, layout: str, reason: str):
        super().__init__(f"布局字符串无法解析（{reason}）：{layout!r}")
        self.layout = layout
        self.reason = reason


class TokenizerState(str, Enum):
    PLAIN = "plain"
    IN_PARENS = "in_parens"
    IN_BRACKETS = "in_brackets"


class _CharClass(str, Enum):
    OPEN_PAREN = "("
    CLOSE_PAREN = ")"
    OPEN_BRACKET = "["
    CLOSE_BRACKET = "]"
    SEPARATOR = "sep"
    OTHER = "other"


class _Action(str, Enum):
    APPEND = "append"  # 字符并入当前 token
    FLUSH = "flush"  # 结束当前 token（若非空），丢弃该字符
    FLUSH_AND_OPEN = "flush_and_open"  # 结束当前 token，以该字符开启新 token
    CLOSE = "close"  # 字符并入当前 token 后立即结束该 token


# 转移表：(状态, 字符类) → (动作, 下一状态)
#
# | 状态        | (            | )            | [              | ]              | - 或空格      | 其它   |
# |-------------|--------------|--------------|----------------|----------------|---------------|--------|
# | PLAIN       | 开启→PARENS  | 收尾→PLAIN   | 开启→BRACKETS  | 收尾→PLAIN     | 分隔→PLAIN    | 追加   |
# | IN_PARENS   | 开启→PARENS  | 收尾→PLAIN   | 开启→BRACKETS  | 收尾→PARENS    | 追加（字面）  | 追加   |
# | IN_BRACKETS | 开启→PARENS  | 收尾→BRACKETS| 开启→BRACKETS  | 收尾→PLAIN     | 追加（字面）  | 追加   |
#
# 收尾只结束自己的定界符：`]` 不会退出 IN_PARENS，`)` 不会退出 IN_BRACKETS。
_S = TokenizerState
_C = _CharClass
_A = _Action
TRANSITIONS: dict[tuple[TokenizerState, _CharClass], tuple[_Action, TokenizerState]] = {
    (_S.PLAIN, _C.OPEN_PAREN): (_A.FLUSH_AND_OPEN, _S.IN_PARENS),
    (_S.PLAIN, _C.CLOSE_PAREN): (_A.CLOSE, _S.PLAIN),
    (_S.PLAIN, _C.OPEN_BRACKET): (_A.FLUSH_AND_OPEN, _S.IN_BRACKETS),
    (_S.PLAIN, _C.CLOSE_BRACKET): (_A.CLOSE, _S.PLAIN),
    (_S.PLAIN, _C.SEPARATOR): (_A.FLUSH, _S.PLAIN),
    (_S.PLAIN, _C.OTHER): (_A.APPEND, _S.PLAIN),
    (_S.IN_PARENS, _C.OPEN_PAREN): (_A.FLUSH_AND_OPEN, _S.IN_PARENS),
    (_S.IN_PARENS, _C.CLOSE_PAREN): (_A.CLOSE, _S.PLAIN),
    (_S.IN_PARENS, _C.OPEN_BRACKET): (_A.FLUSH_AND_OPEN, _S.IN_BRACKETS),
    (_S.IN_PARENS, _C.CLOSE_BRACKET): (_A.CLOSE, _S.IN_PARENS),
    (_S.IN_PARENS, _C.SEPARATOR): (_A.APPEND, _S.IN_PARENS),
    (_S.IN_PARENS, _C.OTHER): (_A.APPEND, _S.IN_PARENS),
    (_S.IN_BRACKETS, _C.OPEN_PAREN): (_A.FLUSH_AND_OPEN, _S.IN_PARENS),
    (_S.IN_BRACKETS, _C.CLOSE_PAREN): (_A.CLOSE, _S.IN_BRACKETS),
    (_S.IN_BRACKETS, _C.OPEN_BRACKET): (_A.FLUSH_AND_OPEN, _S.IN_BRACKETS),
    (_S.IN_BRACKETS, _C.CLOSE_BRACKET): (_A.CLOSE, _S.PLAIN),
    (_S.IN_BRACKETS, _C.SEPARATOR): (_A.APPEND, _S.IN_BRACKETS),
    (_S.IN_BRACKETS, _C.OTHER): (_A.APPEND, _S.IN_BRACKETS),
}


def _classify_char(ch: str) -> _CharClass:
    if ch in TOKEN_SEPARATORS:
        return _CharClass.SEPARATOR
    try:
        return _CharClass(ch)
    except ValueError:
        return _CharClass.OTHER


def tokenize_layout_notes(text: str) -> list[str]:
    """把音符段切成原始 token（保留 `( )` / `[ ]` 定界符，不做音名解析）。"""

    tokens: list[str] = []
    current = ""
    state = TokenizerState.PLAIN

    def flush() -> None:
        nonlocal current
        if current.strip():
            tokens.append(current.strip())
        current = ""

    for ch in text:
        action, state = TRANSITIONS[(state, _classify_char(ch))]
        if action is _Action.APPEND:
            current += ch
        elif action is _Action.FLUSH:
            flush()
        elif action is _Action.FLUSH_AND_OPEN:
            flush()
            current = ch
        else:
            current += ch
            flush()
    flush()
    return tokens


def classify_token(token: str) -> tuple[NoteRole, str]:
    """按定界符判定角色，并去掉定界符。"""

    if token.startswith("(") and token.endswith(")"):
        return NoteRole.BOTTOM, token[1:-1]
    if token.startswith("[") and token.endswith("]"):
        return NoteRole.MUTANT, token[1:-1]
    return NoteRole.TONAL, token


def _clean_layout(layout: str) -> str:
    s = layout[:-1] if layout.endswith(TERMINATOR) else layout
    return re.sub(r"\s+", " ", s).strip()


def parse_layout(layout: str) -> NoteSequence:
    """解析布局字符串为音符序列（第一个必为 ding）。"""

    if not isinstance(layout, str) or not layout:
        raise ParseError(str(layout), "空布局")

    cleaned = _clean_layout(layout)
    sep = cleaned.find(ROOT_SEPARATOR)
    if sep == -1:
        raise ParseError(layout, f"缺少根音分隔符 {ROOT_SEPARATOR!r}")

    root = parse_pitch_token(cleaned[:sep])
    if root is None:
        raise ParseError(layout, f"根音无法解析：{cleaned[:sep].strip()!r}")

    # 与历史数据一致：缺省或 0 八度都视为 3
    ding_octave = root.octave or DEFAULT_DING_OCTAVE
    out: list[Note] = [Note(pitch_class=root.pitch_class, octave=ding_octave, role=NoteRole.DING)]

    tonal_octave = ding_octave
    last_tonal_index = root.pitch_index
    first_tonal = True
    bottom_octave = ding_octave

    for token in tokenize_layout_notes(cleaned[sep + 1 :]):
        role, inner = classify_token(token)
        parsed = parse_pitch_token(inner)
        if parsed is None:
            logger.debug("跳过无法识别的 token：%r（layout=%r）", token, layout)
            continue

        if role is NoteRole.BOTTOM:
            if parsed.octave is not None:
                bottom_octave = parsed.octave
            octave = bottom_octave
        elif parsed.octave is not None:
            tonal_octave = parsed.octave
            last_tonal_index = parsed.pitch_index
            first_tonal = False
            octave = tonal_octave
        else:
            if first_tonal:
                first_tonal = False
            elif parsed.pitch_index <= last_tonal_index:
                tonal_octave += 1
            last_tonal_index = parsed.pitch_index
            octave = tonal_octave

        out.append(Note(pitch_class=parsed.pitch_class, octave=octave, role=role))

    if len(out) < 2:
        raise ParseError(layout, "音符不足（只有 ding）")
    return tuple(out)


def _format_token(note: Note) -> str:
    if note.role is NoteRole.BOTTOM:
        return f"({note.name})"
    if note.role is NoteRole.MUTANT:
        return f"[{note.name}]"
    return note.name


def format_layout(notes: NoteSequence | list[Note]) -> str:
    """序列化为规范布局（每个音都带显式八度），`parse_layout` 可无损读回。

    八度语法只有一位数字：tonal/mutant/bottom 须在 0..9，ding 须在 1..9（0 会被读成 3）。
    超出范围（例如同音名长链推断出的 C10）无法无损写出，直接抛 ValueError。
    """

    if not notes or notes[0].role is not NoteRole.DING:
        raise ValueError("音符序列必须以 ding 开头")
    if not MIN_DING_OCTAVE <= notes[0].octave <= MAX_OCTAVE:
        raise ValueError(f"ding 八度超出可写范围 {MIN_DING_OCTAVE}..{MAX_OCTAVE}：{notes[0].name}")
    out_of_range = [n.name for n in notes[1:] if not 0 <= n.octave <= MAX_OCTAVE]
    if out_of_range:
        raise ValueError(f"八度超出可写范围 0..{MAX_OCTAVE}：{out_of_range}")
    return notes[0].name + ROOT_SEPARATOR + "-".join(_format_token(n) for n in notes[1:])
