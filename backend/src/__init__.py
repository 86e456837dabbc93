"""
后端代码根包。

定位：
- 后端的领域逻辑（布局字符串解析、音位几何、可行性判定、定价）放在 backend/src 下。
- 前端只负责展示与交互，不直接承载价格与可行性的“真值”计算。
"""
