"""CLI 入口模块 -- python -m fulfilops.gateway <command>

支持的命令：
  batch-job [--dry-run]        构建上一个 ISO 周的标准服装批次
  repair-cascades              续做所有级联未完成的已完成任务
  provision-event <event_id>   为活动生成缺失的模板任务
"""

import asyncio
import sys

from fulfilops.core.deadline import local_today
from fulfilops.core.exceptions import FulfilOpsError

from .bootstrap import Services, open_store_group
from .middleware.logging_config import setup_logging

USAGE = """用法: python -m fulfilops.gateway <command>
命令:
  batch-job [--dry-run]        构建上一个 ISO 周的标准服装批次
  repair-cascades              续做所有级联未完成的已完成任务
  provision-event <event_id>   为活动生成缺失的模板任务"""


def main(argv: list[str] | None = None) -> int:
    """CLI 主入口，返回进程退出码"""
    args = sys.argv[1:] if argv is None else argv
    if not args:
        print(USAGE)
        return 1

    command, rest = args[0], args[1:]
    setup_logging()

    if command == "batch-job":
        coro = batch_job(dry_run="--dry-run" in rest)
    elif command == "repair-cascades":
        coro = repair_cascades()
    elif command == "provision-event":
        if not rest:
            print("缺少参数: event_id")
            return 1
        coro = provision_event(rest[0])
    else:
        print(f"未知命令: {command}")
        print(USAGE)
        return 1

    try:
        return asyncio.run(coro)
    except FulfilOpsError as e:
        print(f"失败 [{e.code}]: {e.message}")
        return 2


async def batch_job(dry_run: bool = False) -> int:
    """执行一次周批次构建"""
    store_group = await open_store_group()
    try:
        services = Services(store_group)
        result = await services.batch_builder.run(local_today(), dry_run=dry_run)
        print(f"批次 {result.batch_id} ({result.week_start} ~ {result.week_end}): {result.status}")
        if result.batch is not None:
            print(f"  订单数: {result.batch.total_orders}")
            print(f"  总额: {result.batch.total_revenue:.2f}")
            for bucket, sizes in result.batch.aggregated_items.items():
                line = ", ".join(f"{size}={qty}" for size, qty in sizes.items())
                print(f"  {bucket}: {line}")
        if result.task_id:
            print(f"  任务: {result.task_id}")
        return 0
    finally:
        await store_group.close()


async def repair_cascades() -> int:
    """修复所有级联未完成的任务"""
    store_group = await open_store_group()
    try:
        summary = await Services(store_group).lifecycle.repair_all()
        print(f"已修复 {len(summary.repaired)} 个任务，失败 {len(summary.failed)} 个")
        for task_id in summary.failed:
            print(f"  失败: {task_id}")
        return 0 if not summary.failed else 2
    finally:
        await store_group.close()


async def provision_event(event_id: str) -> int:
    """为活动生成任务"""
    store_group = await open_store_group()
    try:
        result = await Services(store_group).provisioner.generate_tasks_for_event(
            event_id, local_today()
        )
        print(f"活动 {result.event_id}: 新建 {len(result.created)} 个任务")
        for task in result.created:
            print(f"  {task.task_id}  {task.template_id}  截止 {task.deadline}")
        if result.skipped_templates:
            print(f"  已存在: {', '.join(result.skipped_templates)}")
        return 0
    finally:
        await store_group.close()


if __name__ == "__main__":
    sys.exit(main())
