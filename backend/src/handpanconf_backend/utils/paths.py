"""
路径与仓库定位工具。

定位：
- 后端运行时需要定位仓库根目录（用于读取 docs/data 内的音阶/尺寸/定价数据）。
- 部署时可用环境变量 `HANDPANCONF_DATA_DIR` 直接指定数据目录，跳过仓库定位。
"""

from __future__ import annotations

import os
from pathlib import Path


DATA_DIR_ENV = "HANDPANCONF_DATA_DIR"


def find_repo_root(start: Path | None = None) -> Path:
    """向上搜索仓库根目录（基于目录特征）。"""

    cur = (start or Path(__file__)).resolve()
    if cur.is_file():
        cur = cur.parent

    for _ in range(20):
        if (cur / "backend").exists() and (cur / "docs").exists():
            return cur
        if cur.parent == cur:
            break
        cur = cur.parent
    raise RuntimeError("无法定位仓库根目录（未找到 backend/docs 两个目录）")


def docs_data_dir() -> Path:
    override = os.environ.get(DATA_DIR_ENV)
    if override:
        return Path(override)
    return find_repo_root() / "docs" / "data"
