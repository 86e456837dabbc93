"""
定价引擎回归测试（分项、难度加价、5 的倍数向下取整、配置加载严格性）。

用法：
  python scripts/test_pricing_engine.py
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

from panlayout import Note, NoteRole, parse_layout  # noqa: E402
from handpanconf_backend.domain.feasibility import FeasibilityStatus  # noqa: E402
from handpanconf_backend.domain.pricing import (  # noqa: E402
    COMPONENT_ORDER,
    PricingConfig,
    compute_price,
    load_pricing_config,
    load_pricing_config_from_repo,
    price_breakdown_to_dict,
    pricing_config_from_dict,
)


CONFIG = PricingConfig(
    per_note_base=115,
    octave2_bonus=50,
    bottoms_bonus=25,
    warning_percent=5,
    difficult_percent=10,
    size_surcharge={"53": 0, "45": 50},
)
KURD_9 = parse_layout("D3/A-Bb-C-D-E-F-G-A")


def _notes(count: int) -> tuple[Note, ...]:
    ding = Note("D", 3, NoteRole.DING)
    return (ding,) + tuple(Note("A", 4, NoteRole.TONAL) for _ in range(count - 1))


def test_reference_prices() -> None:
    ok = compute_price(KURD_9, "53", FeasibilityStatus.OK, CONFIG)
    assert ok.subtotal == 1035 and ok.raw_total == 1035 and ok.rounded_total == 1035

    warn = compute_price(KURD_9, "53", FeasibilityStatus.WARNING, CONFIG)
    assert warn.difficulty_percent == 5
    assert abs(warn.raw_total - 1086.75) < 1e-9
    assert warn.rounded_total == 1085

    hard = compute_price(KURD_9, "53", "difficult", CONFIG)
    assert abs(hard.raw_total - 1138.5) < 1e-9
    assert hard.rounded_total == 1135


def test_impossible_and_missing_status_add_nothing() -> None:
    assert compute_price(KURD_9, "53", FeasibilityStatus.IMPOSSIBLE, CONFIG).rounded_total == 1035
    assert compute_price(KURD_9, "53", None, CONFIG).feasibility_status == "ok"


def test_octave2_bottoms_and_size() -> None:
    low = compute_price(parse_layout("D2/A-C-D"), "53", "ok", CONFIG)
    assert low.octave2_count == 2
    assert low.component("octave_bonus").amount == 100
    assert low.rounded_total == 4 * 115 + 100

    with_bottoms = compute_price(parse_layout("D/(G)-(F)-A-C"), "53", "ok", CONFIG)
    assert with_bottoms.has_bottoms
    assert with_bottoms.component("bottoms_bonus").amount == 25
    assert with_bottoms.rounded_total == 5 * 115 + 25

    assert compute_price(KURD_9, "45", "ok", CONFIG).rounded_total == 1085
    assert compute_price(KURD_9, "99", "ok", CONFIG).component("size_surcharge").amount == 0
    assert compute_price(KURD_9, None, "ok", CONFIG).component("size_surcharge").amount == 0


def test_empty_input_never_raises() -> None:
    b = compute_price((), None, None, CONFIG)
    assert b.rounded_total == 0 and b.note_count == 0


def test_rounding_law() -> None:
    for count in range(2, 18):
        for size in ("53", "45"):
            for status in FeasibilityStatus:
                b = compute_price(_notes(count), size, status, CONFIG)
                assert b.rounded_total % 5 == 0
                assert 0 <= b.raw_total - b.rounded_total < 5


def test_monotonic_in_note_count() -> None:
    for status in FeasibilityStatus:
        totals = [compute_price(_notes(n), "53", status, CONFIG).rounded_total for n in range(2, 18)]
        assert totals == sorted(totals)


def test_breakdown_order_and_explain() -> None:
    ok = compute_price(KURD_9, "53", "ok", CONFIG)
    assert tuple(c.name for c in ok.components) == COMPONENT_ORDER
    assert ok.explain() == ["9 个音 × 115 = 1035"]

    warn = compute_price(KURD_9, "53", "warning", CONFIG)
    lines = warn.explain()
    assert len(lines) == 2 and "5%" in lines[1]

    d = price_breakdown_to_dict(warn)
    assert d["rounded_total"] == 1085
    assert [c["name"] for c in d["components"]] == list(COMPONENT_ORDER)


def test_config_loading_is_strict() -> None:
    cfg = load_pricing_config_from_repo()
    assert cfg.per_note_base == 115 and cfg.octave2_bonus == 50 and cfg.bottoms_bonus == 25
    assert cfg.warning_percent == 5 and cfg.difficult_percent == 10
    assert cfg.surcharge_for("53") == 0

    good = {"pricing": CONFIG.to_dict()}
    assert pricing_config_from_dict(good) == CONFIG

    bad_inputs = [
        [],
        {},
        {"pricing": {k: v for k, v in CONFIG.to_dict().items() if k != "per_note_base"}},
        {"pricing": {**CONFIG.to_dict(), "octave2_bonus": "50"}},
        {"pricing": {**CONFIG.to_dict(), "bottoms_bonus": True}},
        {"pricing": {**CONFIG.to_dict(), "warning_percent": -5}},
        {"pricing": {**CONFIG.to_dict(), "size_surcharge": [0, 25]}},
    ]
    for raw in bad_inputs:
        try:
            pricing_config_from_dict(raw)
        except ValueError:
            pass
        else:
            raise AssertionError(f"expected ValueError for {raw!r}")

    try:
        load_pricing_config(REPO_ROOT / "docs" / "data" / "missing-pricing.yaml")
    except FileNotFoundError:
        pass
    else:
        raise AssertionError("expected FileNotFoundError")


def main() -> None:
    test_reference_prices()
    test_impossible_and_missing_status_add_nothing()
    test_octave2_bottoms_and_size()
    test_empty_input_never_raises()
    test_rounding_law()
    test_monotonic_in_note_count()
    test_breakdown_order_and_explain()
    test_config_loading_is_strict()
    print("[OK] pricing engine: reference totals, rounding law, strict config")


if __name__ == "__main__":
    main()
