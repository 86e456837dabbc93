"""
可行性判定（FeasibilityClassifier）：音符序列 + 尺寸 → ok / warning / difficult / impossible。

定位：
- 定价只依赖判定结果（状态），不依赖判定算法；因此这里先定义协议，再给出一个参考实现。
- 参考实现按“顶面音（非 bottom）占用面积 / 壳体可用面积”的比例分级，并检查与腔体冲突的禁用音。

分级（比例阈值来自壳体目录，默认 45% / 50% / 59%）：
- 面积 ≤ comfort：ok
- 面积 ≤ warning：warning（配置进阶）
- 面积 ≤ max：difficult（需要特别项目）
- 超过 max，或含禁用音：impossible

约束：
- 该模块只做诊断，不修改输入；未知尺寸回落到目录的默认尺寸。
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, Protocol

from panlayout import Note, NoteRole
from panlayout.pitch import NOTE_NAMES

if TYPE_CHECKING:
    from .shells import ShellCatalogue


class FeasibilityStatus(str, Enum):
    OK = "ok"
    WARNING = "warning"
    DIFFICULT = "difficult"
    IMPOSSIBLE = "impossible"


# 单个音区的面积（mm²），E2..F5。表外的音按半音外推。
NOTE_SURFACE_MM2: dict[str, int] = {
    "E2": 37149,
    "F2": 35190,
    "F#2": 33282,
    "G2": 31426,
    "G#2": 29622,
    "A2": 27868,
    "A#2": 26167,
    "B2": 24517,
    "C3": 22919,
    "C#3": 21372,
    "D3": 19877,
    "D#3": 18899,
    "E3": 17945,
    "F3": 17015,
    "F#3": 16109,
    "G3": 15228,
    "G#3": 14371,
    "A3": 13538,
    "A#3": 12729,
    "B3": 11944,
    "C4": 11184,
    "C#4": 10447,
    "D4": 9735,
    "D#4": 9047,
    "E4": 8384,
    "F4": 7744,
    "F#4": 7245,
    "G4": 6763,
    "G#4": 6297,
    "A4": 5848,
    "A#4": 5606,
    "B4": 5369,
    "C5": 5137,
    "C#5": 4910,
    "D5": 4688,
    "D#5": 4471,
    "E5": 4259,
    "F5": 4053,
}

_LOWEST_SURFACE = NOTE_SURFACE_MM2["E2"]
_HIGHEST_SURFACE = NOTE_SURFACE_MM2["F5"]
_TABLE_SPAN = 37  # E2 → F5 的半音数


def note_surface(pitch_class: str, octave: int) -> int:
    key = f"{pitch_class}{octave}"
    if key in NOTE_SURFACE_MM2:
        return NOTE_SURFACE_MM2[key]

    # 以 E2 为 0 的半音位置
    pos = (int(octave) - 2) * 12 + NOTE_NAMES.index(pitch_class) - 4
    if pos < 0:
        return round(_LOWEST_SURFACE * 1.06 ** abs(pos))
    if pos > _TABLE_SPAN:
        return round(_HIGHEST_SURFACE * 0.95 ** (pos - _TABLE_SPAN))
    return 10000


@dataclass(frozen=True)
class FeasibilityThresholds:
    shell_area_mm2: int
    comfort_pct: float = 45.0
    warning_pct: float = 50.0
    max_pct: float = 59.0
    forbidden_notes: tuple[str, ...] = ()

    @property
    def comfort_mm2(self) -> int:
        return round(self.shell_area_mm2 * self.comfort_pct / 100)

    @property
    def warning_mm2(self) -> int:
        return round(self.shell_area_mm2 * self.warning_pct / 100)

    @property
    def max_mm2(self) -> int:
        return round(self.shell_area_mm2 * self.max_pct / 100)


@dataclass(frozen=True)
class FeasibilityResult:
    status: FeasibilityStatus
    surface_mm2: int
    ratio: float
    reason: str
    size_category: str
    forbidden_notes: tuple[str, ...] = ()

    @property
    def feasible(self) -> bool:
        return self.status is not FeasibilityStatus.IMPOSSIBLE


class FeasibilityClassifier(Protocol):
    def check_feasibility(self, notes: Iterable[Note], size_category: str) -> FeasibilityResult: ...


def top_surface(notes: Iterable[Note]) -> int:
    return sum(note_surface(n.pitch_class, n.octave) for n in notes if n.role is not NoteRole.BOTTOM)


class SurfaceFeasibilityClassifier:
    """按顶面面积占比分级的参考实现。"""

    def __init__(self, *, thresholds_by_size: dict[str, FeasibilityThresholds], default_size: str):
        if default_size not in thresholds_by_size:
            raise ValueError(f"默认尺寸 {default_size!r} 不在阈值表中：{sorted(thresholds_by_size)}")
        self._by_size = dict(thresholds_by_size)
        self._default_size = default_size

    @classmethod
    def from_catalogue(cls, catalogue: "ShellCatalogue") -> "SurfaceFeasibilityClassifier":
        return cls(
            thresholds_by_size={code: s.feasibility for code, s in catalogue.sizes.items()},
            default_size=catalogue.default_size,
        )

    def thresholds_for(self, size_category: str | None) -> tuple[str, FeasibilityThresholds]:
        code = str(size_category) if size_category is not None else self._default_size
        if code not in self._by_size:
            code = self._default_size
        return code, self._by_size[code]

    def check_feasibility(self, notes: Iterable[Note], size_category: str) -> FeasibilityResult:
        notes = tuple(notes)
        code, t = self.thresholds_for(size_category)
        surface = top_surface(notes)
        ratio = surface / t.shell_area_mm2 if t.shell_area_mm2 else 0.0

        forbidden = tuple(n.name for n in notes if n.role is not NoteRole.BOTTOM and n.name in t.forbidden_notes)
        if forbidden:
            return FeasibilityResult(
                status=FeasibilityStatus.IMPOSSIBLE,
                surface_mm2=surface,
                ratio=ratio,
                reason="forbidden_note_conflicts_with_cavity",
                size_category=code,
                forbidden_notes=forbidden,
            )

        if surface <= t.comfort_mm2:
            status, reason = FeasibilityStatus.OK, "standard"
        elif surface <= t.warning_mm2:
            status, reason = FeasibilityStatus.WARNING, "advanced"
        elif surface <= t.max_mm2:
            status, reason = FeasibilityStatus.DIFFICULT, "special_project_required"
        else:
            status, reason = FeasibilityStatus.IMPOSSIBLE, "surface_exceeds_max"
        return FeasibilityResult(status=status, surface_mm2=surface, ratio=ratio, reason=reason, size_category=code)


def feasibility_to_dict(r: FeasibilityResult) -> dict[str, Any]:
    return {
        "status": r.status.value,
        "feasible": r.feasible,
        "surface_mm2": r.surface_mm2,
        "ratio": r.ratio,
        "reason": r.reason,
        "size_category": r.size_category,
        "forbidden_notes": list(r.forbidden_notes),
    }
