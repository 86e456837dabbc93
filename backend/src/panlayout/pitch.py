"""
谱面音名（pitch class + 可选八度）解析与记谱转换。

定位：
- 布局字符串（layout）里的每个 token 以及根音都使用同一套语法：`字母 [#] [八度数字]`。
  八度数字只接受单个 ASCII 数字 0-9（全角/其它文字的数字不算）。
- 内部一律使用升号（sharp）形式存储；降号拼写在查表前改写为等音升号。
- 显示层可以按音阶偏好转回降号（toDisplay），音频文件名使用 `s` 代替 `#`。

约束：
- 降号→升号只使用固定的 7 项表（Db Eb Fb Gb Ab Bb Cb），不做其它等音推断。
- `parse_pitch_token` 对无法识别的输入返回 None（由调用方决定是否容错）。
"""

from __future__ import annotations

import re
from dataclasses import dataclass


NOTE_NAMES: tuple[str, ...] = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")

FLATS_TO_SHARPS: dict[str, str] = {
    "Db": "C#",
    "Eb": "D#",
    "Fb": "E",
    "Gb": "F#",
    "Ab": "G#",
    "Bb": "A#",
    "Cb": "B",
}

SHARPS_TO_FLATS: dict[str, str] = {
    "C#": "Db",
    "D#": "Eb",
    "F#": "Gb",
    "G#": "Ab",
    "A#": "Bb",
}

_PITCH_RE = re.compile(r"^([A-G]#?)([0-9])?$")


@dataclass(frozen=True)
class PitchToken:
    """解析后的音名 token：pitch class（升号形式）+ 显式八度（可缺省）。"""

    pitch_class: str
    octave: int | None = None

    @property
    def pitch_index(self) -> int:
        return NOTE_NAMES.index(self.pitch_class)


def to_sharp_notation(text: str) -> str:
    """把开头的降号拼写改写为升号（`Bb3` → `A#3`），其余原样返回。"""

    for flat, sharp in FLATS_TO_SHARPS.items():
        if text.startswith(flat):
            return sharp + text[len(flat):]
    return text


def parse_pitch_token(text: str) -> PitchToken | None:
    s = to_sharp_notation((text or "").strip())
    m = _PITCH_RE.match(s)
    if m is None:
        return None
    octave = int(m.group(2)) if m.group(2) is not None else None
    return PitchToken(pitch_class=m.group(1), octave=octave)


def pitch_index(pitch_class: str) -> int:
    pc = to_sharp_notation(pitch_class.strip())
    if pc not in NOTE_NAMES:
        raise ValueError(f"未知 pitch class：{pitch_class!r}")
    return NOTE_NAMES.index(pc)


def pitch_to_midi(pitch_class: str, octave: int) -> int:
    """转换为 MIDI note number（C4=60）。"""

    # 与 MusicXML 相同的八度定义：C-1=0，因此 midi = (octave+1)*12 + pc
    return int((int(octave) + 1) * 12 + pitch_index(pitch_class))


def midi_to_pitch(midi: int) -> tuple[str, int]:
    midi = int(midi)
    return NOTE_NAMES[midi % 12], midi // 12 - 1


def to_display_notation(name: str, use_flats: bool) -> str:
    """按音阶偏好显示：use_flats=True 时 `A#3` → `Bb3`，自然音不变。"""

    if not use_flats:
        return name
    m = _PITCH_RE.match(name)
    if m is None:
        return name
    flat = SHARPS_TO_FLATS.get(m.group(1))
    if flat is None:
        return name
    return flat + (m.group(2) or "")


def note_to_file_name(name: str) -> str:
    """音频采样文件名：`C#4` → `Cs4`，`Bb3` → `As3`。"""

    return to_sharp_notation(name).replace("#", "s")
