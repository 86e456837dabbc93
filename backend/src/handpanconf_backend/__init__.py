"""
HandpanConf 后端：手碟（handpan）定制配置器的领域逻辑与 HTTP API。

子包：
- domain：音阶目录、壳体目录、可行性判定、定价、配置流水线
- engines：音位几何（圆形壳体示意图坐标）
- api：FastAPI 应用
"""
