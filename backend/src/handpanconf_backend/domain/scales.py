"""
音阶目录与移调：音阶 id + 根音 + 音符数 → 规范布局字符串 / 音符序列。

定位：
- 目录中的 patterns 以各音阶的基准调书写（例如 Kurd 以 D3 为 ding）。
- 用户选择的根音（例如 E3）只是整体移调：每个音按 ding 与目标根音的半音差平移，角色保持不变。

约束（正确地失败）：
- 未知音阶、音阶无配置器 pattern、该音符数无 pattern、根音无法解析：直接抛错，不做就近匹配。
- 目录文件缺字段或类型不对必须失败。
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterable

import yaml

from panlayout import Note, NoteSequence, format_layout, parse_layout
from panlayout.pitch import midi_to_pitch, parse_pitch_token, pitch_to_midi, to_display_notation

from ..utils.paths import docs_data_dir


SCALES_FILENAME = "HandpanConf-Scales v0.1.yaml"


@dataclass(frozen=True)
class ScaleDefinition:
    scale_id: str
    name: str
    base_root: str
    base_octave: int
    use_flats: bool
    mood: str
    base_notes: tuple[str, ...]
    patterns: dict[int, str] | None

    @property
    def has_configurator_support(self) -> bool:
        return self.patterns is not None

    def note_counts(self) -> list[int]:
        return sorted(self.patterns) if self.patterns else []


@dataclass(frozen=True)
class ScaleCatalogue:
    scales: dict[str, ScaleDefinition]

    def get(self, scale_id: str) -> ScaleDefinition:
        s = self.scales.get(scale_id)
        if s is None:
            raise KeyError(f"未知音阶：{scale_id!r}（可选：{sorted(self.scales)}）")
        return s

    def configurator_scales(self) -> list[str]:
        return [k for k, s in self.scales.items() if s.has_configurator_support]

    def pattern_for(self, scale_id: str, note_count: int) -> str:
        s = self.get(scale_id)
        if s.patterns is None:
            raise ValueError(f"音阶 {scale_id!r} 不提供配置器 pattern")
        p = s.patterns.get(int(note_count))
        if p is None:
            raise ValueError(f"音阶 {scale_id!r} 没有 {note_count} 音的 pattern（可选：{s.note_counts()}）")
        return p

    def display_name(self, scale_id: str, root_note: str | None = None) -> str:
        s = self.get(scale_id)
        root = s.base_root
        if root_note:
            parsed = parse_pitch_token(root_note)
            if parsed is not None:
                root = parsed.pitch_class
        return f"{to_display_notation(root, s.use_flats)} {s.name}"


def transpose_notes(notes: Iterable[Note], semitones: int) -> NoteSequence:
    out: list[Note] = []
    for n in notes:
        pc, octave = midi_to_pitch(n.to_midi() + int(semitones))
        out.append(Note(pitch_class=pc, octave=octave, role=n.role))
    return tuple(out)


def parse_root_note(root_note: str, *, default_octave: int) -> tuple[str, int]:
    parsed = parse_pitch_token(root_note)
    if parsed is None:
        raise ValueError(f"根音无法解析：{root_note!r}")
    return parsed.pitch_class, parsed.octave if parsed.octave is not None else int(default_octave)


def resolve_scale_layout(
    catalogue: ScaleCatalogue,
    *,
    scale_id: str,
    root_note: str,
    note_count: int,
) -> tuple[str, NoteSequence]:
    """取 pattern、按基准调解析，再移调到目标根音；返回（规范布局, 音符序列）。"""

    scale = catalogue.get(scale_id)
    pattern = catalogue.pattern_for(scale_id, note_count)
    base_notes = parse_layout(pattern)

    pc, octave = parse_root_note(root_note, default_octave=scale.base_octave)
    semitones = pitch_to_midi(pc, octave) - base_notes[0].to_midi()
    notes = transpose_notes(base_notes, semitones) if semitones else base_notes
    return format_layout(notes), notes


def _parse_scale(scale_id: str, raw: Any) -> ScaleDefinition:
    where = f"scales.{scale_id}"
    if not isinstance(raw, dict):
        raise ValueError(f"ScaleCatalogue: {where} 必须是 dict")
    base_root = raw.get("base_root")
    if not isinstance(base_root, str) or parse_pitch_token(base_root) is None:
        raise ValueError(f"ScaleCatalogue: {where}.base_root 非法：{base_root!r}")
    base_octave = raw.get("base_octave")
    if not isinstance(base_octave, int):
        raise ValueError(f"ScaleCatalogue: {where}.base_octave 必须是 int")

    patterns_raw = raw.get("patterns")
    patterns: dict[int, str] | None = None
    if patterns_raw is not None:
        if not isinstance(patterns_raw, dict) or not patterns_raw:
            raise ValueError(f"ScaleCatalogue: {where}.patterns 必须是非空 dict 或 null")
        patterns = {}
        for k, v in patterns_raw.items():
            try:
                n = int(k)
            except (TypeError, ValueError) as e:
                raise ValueError(f"ScaleCatalogue: {where}.patterns 的 key 必须可转成 int：{k!r}") from e
            if not isinstance(v, str) or not v:
                raise ValueError(f"ScaleCatalogue: {where}.patterns[{k!r}] 必须是非空字符串")
            patterns[n] = v

    base_notes = raw.get("base_notes") or []
    if not isinstance(base_notes, list) or any(not isinstance(x, str) for x in base_notes):
        raise ValueError(f"ScaleCatalogue: {where}.base_notes 必须是 list[str]")

    return ScaleDefinition(
        scale_id=scale_id,
        name=str(raw.get("name") or scale_id),
        base_root=parse_pitch_token(base_root).pitch_class,  # type: ignore[union-attr]
        base_octave=base_octave,
        use_flats=bool(raw.get("use_flats", False)),
        mood=str(raw.get("mood") or ""),
        base_notes=tuple(base_notes),
        patterns=patterns,
    )


def scale_catalogue_from_dict(raw: Any) -> ScaleCatalogue:
    if not isinstance(raw, dict):
        raise ValueError("ScaleCatalogue: 顶层必须是 dict")
    scales_raw = raw.get("scales")
    if not isinstance(scales_raw, dict) or not scales_raw:
        raise ValueError("ScaleCatalogue: 缺少 scales dict")
    return ScaleCatalogue(scales={str(k): _parse_scale(str(k), v) for k, v in scales_raw.items()})


def load_scale_catalogue(path: Path) -> ScaleCatalogue:
    if not path.exists():
        raise FileNotFoundError(f"缺少音阶目录文件：{path}")
    return scale_catalogue_from_dict(yaml.safe_load(path.read_text(encoding="utf-8")))


@lru_cache(maxsize=1)
def load_scale_catalogue_from_repo() -> ScaleCatalogue:
    return load_scale_catalogue(docs_data_dir() / SCALES_FILENAME)


def scale_to_dict(s: ScaleDefinition) -> dict[str, Any]:
    return {
        "scale_id": s.scale_id,
        "name": s.name,
        "display_name": f"{to_display_notation(s.base_root, s.use_flats)} {s.name}",
        "base_root": s.base_root,
        "base_octave": s.base_octave,
        "use_flats": s.use_flats,
        "mood": s.mood,
        "base_notes": list(s.base_notes),
        "note_counts": s.note_counts(),
        "configurator": s.has_configurator_support,
    }
