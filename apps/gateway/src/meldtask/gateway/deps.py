"""依赖注入模块 -- 通过 FastAPI Depends 注入服务实例

服务实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from meldtask.core.store import StoreGroup

from .services.merge_hub import MergeSessionHub
from .services.project_service import ProjectService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_project_service(request: Request) -> ProjectService:
    """从 app.state 获取 ProjectService 实例"""
    return request.app.state.project_service


def get_merge_hub(request: Request) -> MergeSessionHub:
    """从 app.state 获取 MergeSessionHub 实例"""
    return request.app.state.merge_hub
