"""配置模块 -- 可通过环境变量覆盖

包含数据库路径、历史栈上限、默认项目名、项目 ID 计数器名等配置。
"""

import os
from pathlib import Path

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


def _get_base_dir() -> Path:
    """获取 data 基础目录"""
    return Path(os.environ.get("MELDTASK_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "MELDTASK_DB_PATH",
        str(_get_base_dir() / "sqlite" / "meldtask.db"),
    )


class MeldTaskConfig(BaseModel):
    """运行期配置

    环境变量:
        MELDTASK_HISTORY_LIMIT: undo 历史上限（默认 50）
        MELDTASK_DEFAULT_PROJECT_NAME: 新项目默认名
        MELDTASK_PROJECT_SEQUENCE: 项目 ID 计数器名称
        MELDTASK_STORE_KEY: Gateway 使用的存储键
    """

    history_limit: int = Field(default=50, ge=1, description="undo 历史上限")
    default_project_name: str = Field(
        default="マイプロジェクト",
        min_length=1,
        description="新项目默认名",
    )
    project_sequence: str = Field(
        default="projects",
        min_length=1,
        description="项目 ID 计数器名称",
    )
    store_key: str = Field(
        default="local",
        min_length=1,
        description="Gateway 使用的存储键",
    )


def load_config() -> MeldTaskConfig:
    """从环境变量加载配置；无效值记录 warning 后使用默认值"""
    kwargs: dict = {}

    if val := os.environ.get("MELDTASK_HISTORY_LIMIT"):
        try:
            limit = int(val)
            if limit < 1:
                raise ValueError(val)
            kwargs["history_limit"] = limit
        except ValueError:
            log.warning(
                "invalid_history_limit_config",
                env_var="MELDTASK_HISTORY_LIMIT",
                value=val,
                fallback=50,
            )

    if val := os.environ.get("MELDTASK_DEFAULT_PROJECT_NAME"):
        kwargs["default_project_name"] = val

    if val := os.environ.get("MELDTASK_PROJECT_SEQUENCE"):
        kwargs["project_sequence"] = val

    if val := os.environ.get("MELDTASK_STORE_KEY"):
        kwargs["store_key"] = val

    return MeldTaskConfig(**kwargs)
