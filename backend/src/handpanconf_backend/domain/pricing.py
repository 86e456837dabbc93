"""
定价引擎（PricingEngine）：音符序列 + 尺寸 + 可行性状态 → 价格与分项明细。

定位：
- 纯函数：同样的输入永远得到同样的价格；不读取任何全局状态。
- 所有业务常数（单音价格、低八度加价、bottom 加价、尺寸加价表、难度百分比）都来自 PricingConfig，
  引擎本身不写死任何金额。

计算顺序（明细按此顺序输出）：
1. base = per_note_base × 音符数（含 ding）
2. octave_bonus = octave2_bonus × 八度为 2 的音符数
3. bottoms_bonus = 存在 bottom 时加一次固定金额
4. size_surcharge = 尺寸加价表查表（缺省为 0）
5. subtotal = 以上之和
6. difficulty_amount = subtotal × 难度百分比 / 100（ok=0，warning/difficult 取配置值）
7. raw_total = subtotal + difficulty_amount
8. rounded_total = floor(raw_total / 5) × 5

约束：
- compute_price 不抛异常：缺失/为零的输入退化为 0 值分项。
- 配置加载必须严格：缺 key 或类型不对直接失败（正确地失败），不做静默补全。
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable

import yaml

from panlayout import Note, NoteRole

from .feasibility import FeasibilityStatus
from ..utils.paths import docs_data_dir


PRICING_FILENAME = "HandpanConf-Pricing v0.1.yaml"
ROUNDING_STEP = 5

COMPONENT_ORDER = ("base", "octave_bonus", "bottoms_bonus", "size_surcharge", "difficulty_amount")


@dataclass(frozen=True)
class PricingConfig:
    per_note_base: float
    octave2_bonus: float
    bottoms_bonus: float
    warning_percent: float
    difficult_percent: float
    size_surcharge: dict[str, float] = field(default_factory=dict)

    def surcharge_for(self, size_category: str | None) -> float:
        if size_category is None:
            return 0.0
        return float(self.size_surcharge.get(str(size_category), 0.0))

    def percent_for(self, status: FeasibilityStatus | str | None) -> float:
        if status == FeasibilityStatus.WARNING:
            return float(self.warning_percent)
        if status == FeasibilityStatus.DIFFICULT:
            return float(self.difficult_percent)
        return 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "per_note_base": self.per_note_base,
            "octave2_bonus": self.octave2_bonus,
            "bottoms_bonus": self.bottoms_bonus,
            "warning_percent": self.warning_percent,
            "difficult_percent": self.difficult_percent,
            "size_surcharge": dict(self.size_surcharge),
        }


@dataclass(frozen=True)
class PriceComponent:
    name: str
    amount: float
    detail: str


@dataclass(frozen=True)
class PriceBreakdown:
    components: tuple[PriceComponent, ...]
    subtotal: float
    difficulty_percent: float
    feasibility_status: str
    raw_total: float
    rounded_total: int
    note_count: int
    octave2_count: int
    has_bottoms: bool

    def component(self, name: str) -> PriceComponent:
        for c in self.components:
            if c.name == name:
                return c
        raise KeyError(name)

    def explain(self) -> list[str]:
        """人可读的明细：只列出非零分项（base 总是列出）。"""

        return [c.detail for c in self.components if c.name == "base" or c.amount != 0]


def compute_price(
    notes: Iterable[Note],
    size_category: str | None,
    feasibility_status: FeasibilityStatus | str | None,
    config: PricingConfig,
) -> PriceBreakdown:
    notes = tuple(notes or ())
    count = len(notes)
    octave2_count = sum(1 for n in notes if n.octave == 2)
    has_bottoms = any(n.role is NoteRole.BOTTOM for n in notes)

    base = float(config.per_note_base) * count
    octave_bonus = float(config.octave2_bonus) * octave2_count
    bottoms_bonus = float(config.bottoms_bonus) if has_bottoms else 0.0
    size_surcharge = config.surcharge_for(size_category)
    subtotal = base + octave_bonus + bottoms_bonus + size_surcharge

    status = _status_value(feasibility_status)
    percent = config.percent_for(status)
    difficulty_amount = subtotal * percent / 100
    raw_total = subtotal + difficulty_amount
    rounded_total = int(math.floor(raw_total / ROUNDING_STEP) * ROUNDING_STEP)

    components = (
        PriceComponent("base", base, f"{count} 个音 × {_fmt(config.per_note_base)} = {_fmt(base)}"),
        PriceComponent(
            "octave_bonus",
            octave_bonus,
            f"八度 2：+{_fmt(octave_bonus)}（{octave2_count} × {_fmt(config.octave2_bonus)}）",
        ),
        PriceComponent("bottoms_bonus", bottoms_bonus, f"bottoms：+{_fmt(bottoms_bonus)}"),
        PriceComponent("size_surcharge", size_surcharge, f"尺寸 {size_category}：+{_fmt(size_surcharge)}"),
        PriceComponent(
            "difficulty_amount",
            difficulty_amount,
            f"难度（{status}）：+{_fmt(percent)}% = +{_fmt(difficulty_amount)}",
        ),
    )
    return PriceBreakdown(
        components=components,
        subtotal=subtotal,
        difficulty_percent=percent,
        feasibility_status=status,
        raw_total=raw_total,
        rounded_total=rounded_total,
        note_count=count,
        octave2_count=octave2_count,
        has_bottoms=has_bottoms,
    )


def _status_value(status: FeasibilityStatus | str | None) -> str:
    if status is None:
        return FeasibilityStatus.OK.value
    if isinstance(status, FeasibilityStatus):
        return status.value
    return str(status)


def _fmt(x: float) -> str:
    return f"{x:g}"


def price_breakdown_to_dict(b: PriceBreakdown) -> dict[str, Any]:
    return {
        "components": [{"name": c.name, "amount": c.amount, "detail": c.detail} for c in b.components],
        "subtotal": b.subtotal,
        "difficulty_percent": b.difficulty_percent,
        "feasibility_status": b.feasibility_status,
        "raw_total": b.raw_total,
        "rounded_total": b.rounded_total,
        "explain": b.explain(),
    }


def _as_amount(raw: dict[str, Any], key: str, *, where: str) -> float:
    if key not in raw:
        raise ValueError(f"PricingConfig: 缺少 {where}.{key}")
    v = raw[key]
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ValueError(f"PricingConfig: {where}.{key} 必须是数值：{v!r}")
    if v < 0:
        raise ValueError(f"PricingConfig: {where}.{key} 不能为负：{v!r}")
    return float(v)


def pricing_config_from_dict(raw: Any) -> PricingConfig:
    if not isinstance(raw, dict):
        raise ValueError("PricingConfig: 顶层必须是 dict")
    p = raw.get("pricing")
    if not isinstance(p, dict):
        raise ValueError("PricingConfig: 缺少 pricing dict")

    surcharges_raw = p.get("size_surcharge") or {}
    if not isinstance(surcharges_raw, dict):
        raise ValueError("PricingConfig: pricing.size_surcharge 必须是 dict")
    surcharges = {str(k): _as_amount(surcharges_raw, k, where="pricing.size_surcharge") for k in surcharges_raw}

    return PricingConfig(
        per_note_base=_as_amount(p, "per_note_base", where="pricing"),
        octave2_bonus=_as_amount(p, "octave2_bonus", where="pricing"),
        bottoms_bonus=_as_amount(p, "bottoms_bonus", where="pricing"),
        warning_percent=_as_amount(p, "warning_percent", where="pricing"),
        difficult_percent=_as_amount(p, "difficult_percent", where="pricing"),
        size_surcharge=surcharges,
    )


def load_pricing_config(path: Path) -> PricingConfig:
    if not path.exists():
        raise FileNotFoundError(f"缺少定价参数文件：{path}")
    return pricing_config_from_dict(yaml.safe_load(path.read_text(encoding="utf-8")))


@lru_cache(maxsize=1)
def load_pricing_config_from_repo() -> PricingConfig:
    return load_pricing_config(docs_data_dir() / PRICING_FILENAME)
