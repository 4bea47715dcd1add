"""依赖注入模块 -- 通过 FastAPI Depends 注入服务实例

服务实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

import hmac
from datetime import date

from fastapi import Header, Request
from fulfilops.core.config import get_cron_secret
from fulfilops.core.deadline import local_today
from fulfilops.core.exceptions import AuthError
from fulfilops.core.store import RecordStore, StoreGroup

from .services.batch_builder import BatchBuilder
from .services.clothing_orders import ClothingOrderService
from .services.lifecycle import TaskLifecycleManager
from .services.minicard_orders import MinicardOrderService
from .services.provisioning import EventProvisioner
from .services.supplier_orders import SupplierOrderService
from .services.task_query import TaskQueryService


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_record_store(request: Request) -> RecordStore:
    """带超时保护的记录存储"""
    return request.app.state.store_group.record_store


def get_lifecycle(request: Request) -> TaskLifecycleManager:
    return request.app.state.lifecycle


def get_batch_builder(request: Request) -> BatchBuilder:
    return request.app.state.batch_builder


def get_clothing_orders(request: Request) -> ClothingOrderService:
    return request.app.state.clothing_orders


def get_minicard_orders(request: Request) -> MinicardOrderService:
    return request.app.state.minicard_orders


def get_supplier_orders(request: Request) -> SupplierOrderService:
    return request.app.state.supplier_orders


def get_provisioner(request: Request) -> EventProvisioner:
    return request.app.state.provisioner


def get_task_query(request: Request) -> TaskQueryService:
    return request.app.state.task_query


def get_today(request: Request) -> date:
    """业务时区下的今天；测试可通过 app.state.clock 固定日期"""
    clock = getattr(request.app.state, "clock", None) or local_today
    return clock()


def get_actor(x_admin_email: str | None = Header(default=None)) -> str:
    """管理员身份（由上游认证代理写入 X-Admin-Email）

    Raises:
        AuthError: 缺少身份头
    """
    if not x_admin_email or not x_admin_email.strip():
        raise AuthError("Missing authenticated admin identity")
    return x_admin_email.strip()


def verify_cron_secret(
    authorization: str | None = Header(default=None),
    x_cron_secret: str | None = Header(default=None),
) -> None:
    """校验 Cron 共享密钥（Authorization: Bearer <secret> 或 X-Cron-Secret）

    未配置密钥时拒绝所有调用。
    """
    expected = get_cron_secret()
    if expected is None:
        raise AuthError("Cron secret is not configured")

    provided = x_cron_secret
    if authorization and authorization.lower().startswith("bearer "):
        provided = authorization[len("bearer "):].strip()
    if not provided or not hmac.compare_digest(provided.encode(), expected.encode()):
        raise AuthError("Invalid cron secret")
