"""
HandpanConf 的“布局字符串”（notes layout）数据结构与解析器。

定位：
- 本目录只放谱面层逻辑：音名语法、布局字符串 token 化、八度推断、规范化序列化。
- 不依赖后端其它模块；几何、可行性、定价都在 handpanconf_backend 中消费这里的输出。
"""

from .layout_text import Note, NoteRole, NoteSequence, ParseError, format_layout, parse_layout, tokenize_layout_notes

__all__ = [
    "Note",
    "NoteRole",
    "NoteSequence",
    "ParseError",
    "format_layout",
    "parse_layout",
    "tokenize_layout_notes",
]
