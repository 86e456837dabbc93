"""
配置流水线：布局字符串 / 乐器配置 → 音符序列 → {示意图坐标, 可行性} → 价格明细。

定位：
- 这是 API 与前端共用的“一次算完”入口；每次配置变化都整体重算，不保存任何状态。
- 解析失败（ParseError）不是致命错误：返回 valid=False，且不产出示意图与价格
  （前端据此隐藏依赖于有效配置的渲染/报价）。

说明：
- 可行性判定器通过参数注入；缺省使用壳体目录构建的面积占比判定器。
- impossible 的配置仍会给出价格（难度加价为 0），但 orderable=False。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from panlayout import NoteSequence, ParseError, format_layout, parse_layout

from .feasibility import (
    FeasibilityClassifier,
    FeasibilityResult,
    FeasibilityStatus,
    SurfaceFeasibilityClassifier,
    feasibility_to_dict,
)
from .pricing import PriceBreakdown, PricingConfig, compute_price, load_pricing_config_from_repo, price_breakdown_to_dict
from .scales import ScaleCatalogue, load_scale_catalogue_from_repo, resolve_scale_layout
from .shells import ShellCatalogue, load_shell_catalogue_from_repo
from ..engines.layout_geometry import DiagramOptions, ShellDiagram, build_shell_diagram, diagram_to_dict


logger = logging.getLogger(__name__)

# 配置器界面上可选的 ding 调性
DEFAULT_TONALITIES: tuple[str, ...] = (
    "F2", "F#2", "G2", "G#2", "A2", "A#2", "B2", "C3", "C#3", "D3", "D#3", "E3", "F3", "F#3", "G3",
)


@dataclass(frozen=True)
class InstrumentConfiguration:
    scale_pattern_id: str
    root_note: str
    note_count: int
    size_category: str
    material: str
    tuning_standard: int = 440


@dataclass(frozen=True)
class ConfiguratorResult:
    valid: bool
    layout: str
    size_category: str
    error: str | None = None
    notes: NoteSequence = ()
    canonical_layout: str | None = None
    diagram: ShellDiagram | None = None
    feasibility: FeasibilityResult | None = None
    price: PriceBreakdown | None = None

    @property
    def orderable(self) -> bool:
        return self.valid and self.feasibility is not None and self.feasibility.feasible


def default_classifier() -> SurfaceFeasibilityClassifier:
    return SurfaceFeasibilityClassifier.from_catalogue(load_shell_catalogue_from_repo())


def quote_notes(
    notes: NoteSequence,
    size_category: str,
    *,
    layout: str,
    pricing: PricingConfig | None = None,
    classifier: FeasibilityClassifier | None = None,
    diagram_size: float = 300.0,
    diagram_options: DiagramOptions = DiagramOptions(),
    feasibility_status: FeasibilityStatus | None = None,
) -> ConfiguratorResult:
    pricing = pricing or load_pricing_config_from_repo()
    classifier = classifier or default_classifier()

    feas = classifier.check_feasibility(notes, size_category)
    status = feasibility_status or feas.status
    return ConfiguratorResult(
        valid=True,
        layout=layout,
        size_category=size_category,
        notes=notes,
        canonical_layout=format_layout(notes),
        diagram=build_shell_diagram(notes, diagram_size, diagram_options),
        feasibility=feas,
        price=compute_price(notes, size_category, status, pricing),
    )


def quote_layout(layout: str, size_category: str, **kwargs: Any) -> ConfiguratorResult:
    try:
        notes = parse_layout(layout)
    except ParseError as e:
        logger.info("布局无效，跳过渲染与报价：%s", e)
        return ConfiguratorResult(valid=False, layout=layout, size_category=size_category, error=str(e))
    return quote_notes(notes, size_category, layout=layout, **kwargs)


def validate_configuration(config: InstrumentConfiguration, shells: ShellCatalogue) -> None:
    shells.size(config.size_category)
    shells.validate_material(config.material)
    shells.validate_tuning(config.tuning_standard)


def quote_configuration(
    config: InstrumentConfiguration,
    *,
    scales: ScaleCatalogue | None = None,
    shells: ShellCatalogue | None = None,
    **kwargs: Any,
) -> ConfiguratorResult:
    """乐器配置 → 移调后的规范布局 → 报价（材质/调音基准只做校验）。"""

    scales = scales or load_scale_catalogue_from_repo()
    shells = shells or load_shell_catalogue_from_repo()
    validate_configuration(config, shells)

    layout, notes = resolve_scale_layout(
        scales,
        scale_id=config.scale_pattern_id,
        root_note=config.root_note,
        note_count=config.note_count,
    )
    kwargs.setdefault("classifier", SurfaceFeasibilityClassifier.from_catalogue(shells))
    return quote_notes(notes, config.size_category, layout=layout, **kwargs)


def check_all_tonalities(
    scale_id: str,
    note_count: int,
    size_category: str,
    *,
    tonalities: tuple[str, ...] = DEFAULT_TONALITIES,
    scales: ScaleCatalogue | None = None,
    classifier: FeasibilityClassifier | None = None,
) -> dict[str, FeasibilityResult]:
    """同一 pattern 在各候选调性下的可行性（前端据此禁用不可做的调性）。"""

    scales = scales or load_scale_catalogue_from_repo()
    classifier = classifier or default_classifier()
    out: dict[str, FeasibilityResult] = {}
    for tonality in tonalities:
        _, notes = resolve_scale_layout(scales, scale_id=scale_id, root_note=tonality, note_count=note_count)
        out[tonality] = classifier.check_feasibility(notes, size_category)
    return out


def result_to_dict(r: ConfiguratorResult) -> dict[str, Any]:
    out: dict[str, Any] = {
        "valid": r.valid,
        "orderable": r.orderable,
        "layout": r.layout,
        "size_category": r.size_category,
        "error": r.error,
    }
    if not r.valid:
        return out
    out["canonical_layout"] = r.canonical_layout
    out["notes"] = [{"name": n.name, "pitch_class": n.pitch_class, "octave": n.octave, "role": n.role.value} for n in r.notes]
    out["diagram"] = diagram_to_dict(r.diagram) if r.diagram is not None else None
    out["feasibility"] = feasibility_to_dict(r.feasibility) if r.feasibility is not None else None
    out["price"] = price_breakdown_to_dict(r.price) if r.price is not None else None
    return out
