"""Cron 入口路由 -- 每周标准服装批次

POST /batch-job?dryRun=true|false: 执行一次周批次构建（共享密钥认证）
GET /batch-job: 描述该入口（同样需要认证）

失败只记录日志（含耗时毫秒），不在进程内重试，由下一次 Cron 调度重新执行。
"""

import time

import structlog
from fastapi import APIRouter, Depends, Query
from fulfilops.core.exceptions import FulfilOpsError

from ..deps import get_batch_builder, get_today, verify_cron_secret
from ..services.batch_builder import BatchBuilder

log = structlog.get_logger()

router = APIRouter(dependencies=[Depends(verify_cron_secret)])


@router.post("/batch-job")
async def run_batch_job(
    dry_run: bool = Query(default=False, alias="dryRun"),
    builder: BatchBuilder = Depends(get_batch_builder),
    today=Depends(get_today),
):
    """执行周批次构建

    响应：
    - {"status": "skipped", "reason": "no_orders", "week_start", "week_end"}
    - {"status": "created" | "exists", "task_id", "batch"}
    - {"mode": "dry-run", "batch"}
    """
    started = time.monotonic()
    try:
        result = await builder.run(today, dry_run=dry_run)
    except FulfilOpsError as e:
        log.error(
            "batch_job_failed",
            error=e.message,
            code=e.code,
            elapsed_ms=round((time.monotonic() - started) * 1000, 1),
        )
        raise

    elapsed_ms = round((time.monotonic() - started) * 1000, 1)
    log.info("batch_job_finished", status=result.status, elapsed_ms=elapsed_ms)

    batch = result.batch.model_dump(mode="json") if result.batch else None
    if result.status == "skipped":
        return {
            "status": "skipped",
            "reason": "no_orders",
            "batch_id": result.batch_id,
            "week_start": result.week_start.isoformat(),
            "week_end": result.week_end.isoformat(),
        }
    if result.status == "dry-run":
        return {"mode": "dry-run", "batch": batch}
    return {"status": result.status, "task_id": result.task_id, "batch": batch}


@router.get("/batch-job")
async def describe_batch_job(
    builder: BatchBuilder = Depends(get_batch_builder),
    today=Depends(get_today),
):
    """描述周批次入口及下一次运行将处理的周"""
    week_start, week_end = builder.get_week_range(today)
    return {
        "endpoint": "/batch-job",
        "method": "POST",
        "description": "Builds the weekly standard clothing batch for the previous ISO week",
        "auth": ["Authorization: Bearer <secret>", "X-Cron-Secret: <secret>"],
        "params": {"dryRun": "true|false"},
        "week_start": week_start.isoformat(),
        "week_end": week_end.isoformat(),
    }
