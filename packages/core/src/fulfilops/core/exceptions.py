"""履约引擎异常体系

所有服务统一抛出以下异常类型，HTTP 层按 http_status/code 一次性映射，
错误种类从存储层一路保留到接口响应。
"""


class FulfilOpsError(Exception):
    """引擎基础异常"""

    code: str = "INTERNAL_ERROR"
    http_status: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(FulfilOpsError):
    """输入违反业务规则（completion_data 不匹配、订单重复覆盖、非法日期等）

    Args:
        message: 错误描述
        details: 可选的字段级错误明细
    """

    code = "VALIDATION_ERROR"
    http_status = 400

    def __init__(self, message: str, details: dict | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class NotFoundError(FulfilOpsError):
    """请求的记录不存在"""

    http_status = 404

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        if resource_id:
            super().__init__(f"{resource} {resource_id} does not exist")
        else:
            super().__init__(f"{resource} does not exist")

    @property
    def code(self) -> str:  # type: ignore[override]
        return f"{self.resource.upper()}_NOT_FOUND"


class InvalidStateError(FulfilOpsError):
    """状态机拒绝的操作（完成/取消非 pending 任务、修复未完成任务等）

    cascade_incomplete=True 表示任务已完成但级联未走完，调用方可引导至修复路径。
    """

    code = "INVALID_STATE"
    http_status = 400

    def __init__(
        self,
        message: str,
        task_id: str | None = None,
        current_status: str | None = None,
        cascade_incomplete: bool = False,
    ) -> None:
        super().__init__(message)
        self.task_id = task_id
        self.current_status = current_status
        self.cascade_incomplete = cascade_incomplete


class TaskStatusConflictError(InvalidStateError):
    """条件更新失败：记录状态已被并发修改"""

    code = "TASK_STATUS_CONFLICT"

    def __init__(self, task_id: str, expected_status: str, actual_status: str) -> None:
        super().__init__(
            f"Task {task_id} status is {actual_status}, expected {expected_status}",
            task_id=task_id,
            current_status=actual_status,
        )
        self.expected_status = expected_status


class UpstreamError(FulfilOpsError):
    """记录存储调用失败或超时

    unknown_outcome=True 表示写入结果未知（超时），需通过读取判断是否已生效。
    """

    code = "UPSTREAM_ERROR"
    http_status = 500

    def __init__(
        self,
        operation: str,
        reason: str = "",
        unknown_outcome: bool = False,
    ) -> None:
        msg = f"Record store operation '{operation}' failed"
        if reason:
            msg += f": {reason}"
        if unknown_outcome:
            msg += " (outcome unknown)"
        super().__init__(msg)
        self.operation = operation
        self.unknown_outcome = unknown_outcome


class AuthError(FulfilOpsError):
    """调用方身份/共享密钥校验失败"""

    code = "UNAUTHORIZED"
    http_status = 401


class DuplicateBatchError(InvalidStateError):
    """同一 batch_id 已存在未取消的批次任务"""

    code = "DUPLICATE_BATCH"

    def __init__(self, batch_id: str) -> None:
        super().__init__(f"An active batch task already exists for {batch_id}")
        self.batch_id = batch_id
