"""
HandpanConf 后端 API（FastAPI）。

约定：
- 服务端口：7140
- 数据：docs/data 下的音阶 / 壳体 / 定价 YAML（进程内只读一次）

API 设计原则：
- 每次请求都整体重算（解析 → 几何 → 可行性 → 定价），不保存任何配置状态。
- 请求参数非法、目录 id 不存在：严格失败（400 / 404），不做隐式补全。
- 布局字符串暂时无效（ParseError）在 /configure 中不是错误：返回 valid=false，前端据此隐藏报价。
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from panlayout import ParseError, format_layout, parse_layout

from ..domain.configurator import (
    InstrumentConfiguration,
    check_all_tonalities,
    quote_configuration,
    quote_layout,
    result_to_dict,
)
from ..domain.feasibility import FeasibilityStatus, SurfaceFeasibilityClassifier, feasibility_to_dict
from ..domain.pricing import compute_price, load_pricing_config_from_repo, price_breakdown_to_dict
from ..domain.scales import load_scale_catalogue_from_repo, scale_to_dict
from ..domain.shells import load_shell_catalogue_from_repo, shell_catalogue_to_dict
from ..engines.layout_geometry import build_shell_diagram, diagram_to_dict


logger = logging.getLogger(__name__)

app = FastAPI(title="HandpanConf Backend", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


class LayoutRequest(BaseModel):
    layout: str = Field(min_length=1)


class DiagramRequest(BaseModel):
    layout: str = Field(min_length=1)
    size_px: float = Field(default=300.0, gt=0, le=4000)


class FeasibilityRequest(BaseModel):
    layout: str = Field(min_length=1)
    size_category: str = Field(min_length=1)


class PriceRequest(BaseModel):
    layout: str = Field(min_length=1)
    size_category: str = Field(min_length=1)
    # 缺省时由服务端的可行性判定器给出
    feasibility_status: str | None = Field(default=None, pattern="^(ok|warning|difficult|impossible)$")


class ConfigureRequest(BaseModel):
    scale_pattern_id: str | None = None
    root_note: str | None = None
    note_count: int | None = Field(default=None, ge=2, le=32)
    layout: str | None = None
    size_category: str = Field(min_length=1)
    material: str | None = None
    tuning_standard: int = 440
    diagram_size_px: float = Field(default=300.0, gt=0, le=4000)


class TonalitiesRequest(BaseModel):
    scale_pattern_id: str = Field(min_length=1)
    note_count: int = Field(ge=2, le=32)
    size_category: str = Field(min_length=1)


def _notes_to_list(notes: Any) -> list[dict[str, Any]]:
    return [{"name": n.name, "pitch_class": n.pitch_class, "octave": n.octave, "role": n.role.value} for n in notes]


def _parse_or_400(layout: str):
    try:
        return parse_layout(layout)
    except ParseError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e


def _classifier() -> SurfaceFeasibilityClassifier:
    return SurfaceFeasibilityClassifier.from_catalogue(load_shell_catalogue_from_repo())


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/scales")
def api_list_scales() -> list[dict[str, Any]]:
    return [scale_to_dict(s) for s in load_scale_catalogue_from_repo().scales.values()]


@app.get("/scales/{scale_id}/patterns/{note_count}")
def api_get_pattern(scale_id: str, note_count: int) -> dict[str, Any]:
    catalogue = load_scale_catalogue_from_repo()
    try:
        pattern = catalogue.pattern_for(scale_id, note_count)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    return {"scale_id": scale_id, "note_count": note_count, "layout": pattern}


@app.get("/shells")
def api_list_shells() -> dict[str, Any]:
    return shell_catalogue_to_dict(load_shell_catalogue_from_repo())


@app.post("/layout/parse")
def api_parse_layout(req: LayoutRequest) -> dict[str, Any]:
    notes = _parse_or_400(req.layout)
    try:
        canonical = format_layout(notes)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {"layout": req.layout, "canonical_layout": canonical, "notes": _notes_to_list(notes)}


@app.post("/layout/diagram")
def api_layout_diagram(req: DiagramRequest) -> dict[str, Any]:
    notes = _parse_or_400(req.layout)
    return diagram_to_dict(build_shell_diagram(notes, req.size_px))


@app.post("/feasibility")
def api_feasibility(req: FeasibilityRequest) -> dict[str, Any]:
    notes = _parse_or_400(req.layout)
    return feasibility_to_dict(_classifier().check_feasibility(notes, req.size_category))


@app.post("/feasibility/tonalities")
def api_feasibility_tonalities(req: TonalitiesRequest) -> dict[str, Any]:
    try:
        results = check_all_tonalities(req.scale_pattern_id, req.note_count, req.size_category)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return {tonality: feasibility_to_dict(r) for tonality, r in results.items()}


@app.post("/price")
def api_price(req: PriceRequest) -> dict[str, Any]:
    notes = _parse_or_400(req.layout)
    if req.feasibility_status is not None:
        status = FeasibilityStatus(req.feasibility_status)
    else:
        status = _classifier().check_feasibility(notes, req.size_category).status
    breakdown = compute_price(notes, req.size_category, status, load_pricing_config_from_repo())
    logger.info("报价：layout=%r size=%s status=%s total=%s", req.layout, req.size_category, status.value, breakdown.rounded_total)
    return price_breakdown_to_dict(breakdown)


@app.post("/configure")
def api_configure(req: ConfigureRequest) -> dict[str, Any]:
    """两种输入：直接给 layout，或给（音阶, 根音, 音符数, 材质）由目录解析出 layout。"""

    try:
        if req.layout is not None:
            result = quote_layout(req.layout, req.size_category, diagram_size=req.diagram_size_px)
        else:
            if req.scale_pattern_id is None or req.root_note is None or req.note_count is None or req.material is None:
                raise ValueError("缺少 layout 时必须提供 scale_pattern_id / root_note / note_count / material")
            config = InstrumentConfiguration(
                scale_pattern_id=req.scale_pattern_id,
                root_note=req.root_note,
                note_count=req.note_count,
                size_category=req.size_category,
                material=req.material,
                tuning_standard=req.tuning_standard,
            )
            result = quote_configuration(config, diagram_size=req.diagram_size_px)
    except KeyError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return result_to_dict(result)
