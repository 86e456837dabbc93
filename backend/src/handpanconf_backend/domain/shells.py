"""
壳体目录（尺寸 / 材质 / 调音基准）。

定位：
- 尺寸（size category）同时决定定价的尺寸加价（在定价参数中）与可行性阈值（在这里）。
- 材质与调音基准只做合法性校验，不影响解析、几何与基础定价。

约束：
- 目录文件缺字段或类型不对必须失败；不允许“尽量凑一个”。
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from .feasibility import FeasibilityThresholds
from ..utils.paths import docs_data_dir


SHELLS_FILENAME = "HandpanConf-Shells v0.1.yaml"


@dataclass(frozen=True)
class ShellSize:
    code: str
    label: str
    feasibility: FeasibilityThresholds


@dataclass(frozen=True)
class Material:
    code: str
    label: str


@dataclass(frozen=True)
class ShellCatalogue:
    sizes: dict[str, ShellSize]
    default_size: str
    materials: dict[str, Material]
    tuning_standards: tuple[int, ...]

    def size(self, code: str) -> ShellSize:
        s = self.sizes.get(str(code))
        if s is None:
            raise KeyError(f"未知尺寸：{code!r}（可选：{sorted(self.sizes)}）")
        return s

    def validate_material(self, code: str) -> Material:
        m = self.materials.get(code)
        if m is None:
            raise KeyError(f"未知材质：{code!r}（可选：{sorted(self.materials)}）")
        return m

    def validate_tuning(self, hz: int) -> int:
        if int(hz) not in self.tuning_standards:
            raise ValueError(f"不支持的调音基准：{hz}（可选：{list(self.tuning_standards)}）")
        return int(hz)


def _as_number(v: Any, *, where: str) -> float:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        raise ValueError(f"ShellCatalogue: {where} 必须是数值：{v!r}")
    return float(v)


def _parse_thresholds(raw: Any, *, where: str) -> FeasibilityThresholds:
    if not isinstance(raw, dict):
        raise ValueError(f"ShellCatalogue: {where} 必须是 dict")
    area = raw.get("shell_area_mm2")
    if not isinstance(area, int) or area <= 0:
        raise ValueError(f"ShellCatalogue: {where}.shell_area_mm2 必须为正整数")
    forbidden = raw.get("forbidden_notes") or []
    if not isinstance(forbidden, list) or any(not isinstance(n, str) for n in forbidden):
        raise ValueError(f"ShellCatalogue: {where}.forbidden_notes 必须是 list[str]")
    comfort = _as_number(raw.get("comfort_pct", 45), where=f"{where}.comfort_pct")
    warning = _as_number(raw.get("warning_pct", 50), where=f"{where}.warning_pct")
    max_pct = _as_number(raw.get("max_pct", 59), where=f"{where}.max_pct")
    if not (0 < comfort < warning < max_pct <= 100):
        raise ValueError(f"ShellCatalogue: {where} 阈值必须满足 0 < comfort < warning < max ≤ 100")
    return FeasibilityThresholds(
        shell_area_mm2=area,
        comfort_pct=comfort,
        warning_pct=warning,
        max_pct=max_pct,
        forbidden_notes=tuple(forbidden),
    )


def shell_catalogue_from_dict(raw: Any) -> ShellCatalogue:
    if not isinstance(raw, dict):
        raise ValueError("ShellCatalogue: 顶层必须是 dict")

    sizes_raw = raw.get("sizes")
    if not isinstance(sizes_raw, dict) or not sizes_raw:
        raise ValueError("ShellCatalogue: 缺少 sizes dict")
    sizes: dict[str, ShellSize] = {}
    for code, s in sizes_raw.items():
        code = str(code)
        if not isinstance(s, dict):
            raise ValueError(f"ShellCatalogue: sizes[{code!r}] 必须是 dict")
        sizes[code] = ShellSize(
            code=code,
            label=str(s.get("label") or f"{code} cm"),
            feasibility=_parse_thresholds(s.get("feasibility"), where=f"sizes.{code}.feasibility"),
        )

    default_size = str(raw.get("default_size") or "")
    if default_size not in sizes:
        raise ValueError(f"ShellCatalogue: default_size={default_size!r} 不在 sizes 中")

    materials: dict[str, Material] = {}
    for m in raw.get("materials") or []:
        if not isinstance(m, dict) or not isinstance(m.get("code"), str) or not m["code"]:
            raise ValueError(f"ShellCatalogue: materials 条目非法：{m!r}")
        materials[m["code"]] = Material(code=m["code"], label=str(m.get("label") or m["code"]))

    tunings = raw.get("tuning_standards") or []
    if not isinstance(tunings, list) or any(not isinstance(t, int) for t in tunings):
        raise ValueError("ShellCatalogue: tuning_standards 必须是 list[int]")

    return ShellCatalogue(sizes=sizes, default_size=default_size, materials=materials, tuning_standards=tuple(tunings))


def load_shell_catalogue(path: Path) -> ShellCatalogue:
    if not path.exists():
        raise FileNotFoundError(f"缺少壳体目录文件：{path}")
    return shell_catalogue_from_dict(yaml.safe_load(path.read_text(encoding="utf-8")))


@lru_cache(maxsize=1)
def load_shell_catalogue_from_repo() -> ShellCatalogue:
    return load_shell_catalogue(docs_data_dir() / SHELLS_FILENAME)


def shell_catalogue_to_dict(c: ShellCatalogue) -> dict[str, Any]:
    return {
        "default_size": c.default_size,
        "sizes": [
            {
                "code": s.code,
                "label": s.label,
                "feasibility": {
                    "shell_area_mm2": s.feasibility.shell_area_mm2,
                    "comfort_pct": s.feasibility.comfort_pct,
                    "warning_pct": s.feasibility.warning_pct,
                    "max_pct": s.feasibility.max_pct,
                    "forbidden_notes": list(s.feasibility.forbidden_notes),
                },
            }
            for s in c.sizes.values()
        ],
        "materials": [{"code": m.code, "label": m.label} for m in c.materials.values()],
        "tuning_standards": list(c.tuning_standards),
    }
