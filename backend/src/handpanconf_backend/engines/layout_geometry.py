"""
音位几何（LayoutGeometry）：按角色分组后的音符 → 圆形壳体示意图上的 2-D 坐标。

定位：
- 三个互相独立的纯函数（tonal / mutant / bottom），签名统一为 `(index, total, radius, center) -> (x, y)`。
- 示意图构建（build_shell_diagram）负责分组、选半径、排渲染顺序；它是渲染端唯一需要的输出。

坐标约定：
- 角度单位为度，0°=右，90°=上（屏幕方向），逆时针递增。
- x = cx + cos(a)·r，y = cy − sin(a)·r（屏幕 y 轴向下，因此取负号）。

排布规则（与实物手碟的演奏习惯一致）：
- tonal：1 个 → 270°；2 个 → 250°/290°；最后一个固定在 90°。
  偶数个：第一个在 270°，其余左右交替（先左），右侧从 315° 起、左侧从 225° 起，各自在 90° 跨度内均分。
  奇数个：偶数下标在右侧（从 290° 起），奇数下标在左侧（从 250° 起），各自在 120° 跨度内均分。
- mutant：上方弧，以 90° 为中心，跨度 min(120, 40 + 30·(n−1))。
- bottom：下方弧（壳体外圈），以 270° 为中心，跨度 min(140, 40 + 25·(n−1))。

约束：
- 不抛异常：n ≤ 1（包括 0）一律退化为单音位置。
"""

from __future__ import annotations

from dataclasses import dataclass
from math import cos, radians, sin
from typing import Any, Iterable

from panlayout import Note, NoteRole


Point = tuple[float, float]


@dataclass(frozen=True)
class GeometryOptions:
    tonal_single_deg: float = 270.0
    tonal_pair_deg: tuple[float, float] = (250.0, 290.0)
    tonal_last_deg: float = 90.0
    tonal_even_first_deg: float = 270.0
    tonal_even_right_start_deg: float = 315.0
    tonal_even_left_start_deg: float = 225.0
    tonal_even_span_deg: float = 90.0
    tonal_odd_right_start_deg: float = 290.0
    tonal_odd_left_start_deg: float = 250.0
    tonal_odd_span_deg: float = 120.0

    mutant_center_deg: float = 90.0
    mutant_base_spread_deg: float = 40.0
    mutant_step_spread_deg: float = 30.0
    mutant_max_spread_deg: float = 120.0

    bottom_center_deg: float = 270.0
    bottom_base_spread_deg: float = 40.0
    bottom_step_spread_deg: float = 25.0
    bottom_max_spread_deg: float = 140.0


DEFAULT_GEOMETRY = GeometryOptions()


def _snap(v: float) -> float:
    # cos(90°) 等的浮点残差归零，正上/正下方的点精确落在中轴上
    return 0.0 if abs(v) < 1e-12 else v


def polar_to_xy(angle_deg: float, radius: float, center: Point) -> Point:
    a = radians(angle_deg)
    return center[0] + _snap(cos(a)) * radius, center[1] - _snap(sin(a)) * radius


def _wrap(deg: float) -> float:
    return deg - 360.0 if deg >= 360.0 else deg


def _side_step(span: float, per_side: int) -> float:
    return span / (per_side - 1) if per_side > 1 else 0.0


def tonal_angle_deg(index: int, total: int, options: GeometryOptions = DEFAULT_GEOMETRY) -> float:
    o = options
    last = total - 1
    if total <= 1:
        return o.tonal_single_deg
    if total == 2:
        return o.tonal_pair_deg[0] if index == 0 else o.tonal_pair_deg[1]
    if index == last:
        return o.tonal_last_deg

    if total % 2 == 0:
        if index == 0:
            return o.tonal_even_first_deg
        adjusted = index - 1
        side_index = adjusted // 2
        per_side = -(-(total - 2) // 2)
        step = _side_step(o.tonal_even_span_deg, per_side)
        if adjusted % 2 == 1:
            return _wrap(o.tonal_even_right_start_deg + side_index * step)
        return o.tonal_even_left_start_deg - side_index * step

    side_index = index // 2
    per_side = -(-(total - 1) // 2)
    step = _side_step(o.tonal_odd_span_deg, per_side)
    if index % 2 == 0:
        return _wrap(o.tonal_odd_right_start_deg + side_index * step)
    return o.tonal_odd_left_start_deg - side_index * step


def _arc_spread(total: int, base: float, per_note: float, cap: float) -> float:
    return min(cap, base + (total - 1) * per_note)


def mutant_angle_deg(index: int, total: int, options: GeometryOptions = DEFAULT_GEOMETRY) -> float:
    o = options
    if total <= 1:
        return o.mutant_center_deg
    spread = _arc_spread(total, o.mutant_base_spread_deg, o.mutant_step_spread_deg, o.mutant_max_spread_deg)
    return o.mutant_center_deg + spread / 2 - index * (spread / (total - 1))


def bottom_angle_deg(index: int, total: int, options: GeometryOptions = DEFAULT_GEOMETRY) -> float:
    o = options
    if total <= 1:
        return o.bottom_center_deg
    spread = _arc_spread(total, o.bottom_base_spread_deg, o.bottom_step_spread_deg, o.bottom_max_spread_deg)
    return o.bottom_center_deg - spread / 2 + index * (spread / (total - 1))


def tonal_position(index: int, total: int, radius: float, center: Point, options: GeometryOptions = DEFAULT_GEOMETRY) -> Point:
    return polar_to_xy(tonal_angle_deg(index, total, options), radius, center)


def mutant_position(index: int, total: int, radius: float, center: Point, options: GeometryOptions = DEFAULT_GEOMETRY) -> Point:
    return polar_to_xy(mutant_angle_deg(index, total, options), radius, center)


def bottom_position(index: int, total: int, radius: float, center: Point, options: GeometryOptions = DEFAULT_GEOMETRY) -> Point:
    return polar_to_xy(bottom_angle_deg(index, total, options), radius, center)


@dataclass(frozen=True)
class DiagramOptions:
    """示意图尺寸比例（相对于画布边长 size）。"""

    shell_ratio: float = 0.42
    tonal_ring_ratio: float = 0.31
    mutant_ring_ratio: float = 0.18
    bottom_ring_ratio: float = 0.46
    ding_marker_ratio: float = 0.09
    note_marker_ratio: float = 0.065
    small_marker_factor: float = 0.85
    bottoms_view_height_factor: float = 1.15
    geometry: GeometryOptions = DEFAULT_GEOMETRY


@dataclass(frozen=True)
class NotePlacement:
    note: Note
    index_in_role: int
    x: float
    y: float
    ring_radius: float
    marker_radius: float


@dataclass(frozen=True)
class ShellDiagram:
    size: float
    center: Point
    shell_radius: float
    view_height: float
    placements: tuple[NotePlacement, ...]

    def by_role(self, role: NoteRole) -> list[NotePlacement]:
        return [p for p in self.placements if p.note.role is role]


def build_shell_diagram(notes: Iterable[Note], size: float = 300.0, options: DiagramOptions = DiagramOptions()) -> ShellDiagram:
    """按角色分组放置音符；渲染顺序为 ding、mutant、tonal、bottom。"""

    notes = tuple(notes)
    o = options
    size = float(size)
    center = (size / 2, size / 2)
    note_marker = size * o.note_marker_ratio
    small_marker = note_marker * o.small_marker_factor

    dings = [n for n in notes if n.role is NoteRole.DING]
    mutants = [n for n in notes if n.role is NoteRole.MUTANT]
    tonals = [n for n in notes if n.role is NoteRole.TONAL]
    bottoms = [n for n in notes if n.role is NoteRole.BOTTOM]

    out: list[NotePlacement] = []
    for i, n in enumerate(dings):
        out.append(NotePlacement(n, i, center[0], center[1], 0.0, size * o.ding_marker_ratio))

    groups = (
        (mutants, mutant_position, size * o.mutant_ring_ratio, small_marker),
        (tonals, tonal_position, size * o.tonal_ring_ratio, note_marker),
        (bottoms, bottom_position, size * o.bottom_ring_ratio, small_marker),
    )
    for group, place, radius, marker in groups:
        for i, n in enumerate(group):
            x, y = place(i, len(group), radius, center, o.geometry)
            out.append(NotePlacement(n, i, x, y, radius, marker))

    return ShellDiagram(
        size=size,
        center=center,
        shell_radius=size * o.shell_ratio,
        view_height=size * o.bottoms_view_height_factor if bottoms else size,
        placements=tuple(out),
    )


def diagram_to_dict(d: ShellDiagram) -> dict[str, Any]:
    return {
        "size": d.size,
        "center": {"x": d.center[0], "y": d.center[1]},
        "shell_radius": d.shell_radius,
        "view_height": d.view_height,
        "notes": [
            {
                "name": p.note.name,
                "role": p.note.role.value,
                "index_in_role": p.index_in_role,
                "x": p.x,
                "y": p.y,
                "ring_radius": p.ring_radius,
                "marker_radius": p.marker_radius,
            }
            for p in d.placements
        ],
    }
