"""Cron 入口测试 -- /batch-job

测试内容：
1. 共享密钥认证：Bearer / X-Cron-Secret / 错误密钥 / 未配置密钥
2. dryRun=true 返回 {"mode": "dry-run", "batch"} 且不写入
3. 正常运行返回 created + task_id，重复运行返回 exists
4. 无订单返回 skipped
5. GET 描述入口与下一次处理的周
"""

import os

from httpx import AsyncClient

CRON_SECRET = "test-cron-secret"
BEARER = {"Authorization": f"Bearer {CRON_SECRET}"}


class TestCronAuth:
    async def test_bearer_accepted(self, client: AsyncClient):
        resp = await client.post("/batch-job", headers=BEARER)
        assert resp.status_code == 200

    async def test_header_secret_accepted(self, client: AsyncClient):
        resp = await client.post("/batch-job", headers={"X-Cron-Secret": CRON_SECRET})
        assert resp.status_code == 200

    async def test_missing_secret(self, client: AsyncClient):
        resp = await client.post("/batch-job")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "UNAUTHORIZED"

    async def test_wrong_secret(self, client: AsyncClient):
        resp = await client.post("/batch-job", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    async def test_unconfigured_secret_rejects_all(self, client: AsyncClient):
        os.environ.pop("FULFILOPS_CRON_SECRET", None)
        resp = await client.post("/batch-job", headers=BEARER)
        assert resp.status_code == 401

    async def test_admin_header_not_enough(self, client: AsyncClient):
        resp = await client.post("/batch-job", headers={"X-Admin-Email": "admin@example.com"})
        assert resp.status_code == 401


class TestBatchJob:
    async def test_dry_run(self, client: AsyncClient, seeded_week, store_group):
        resp = await client.post("/batch-job?dryRun=true", headers=BEARER)

        assert resp.status_code == 200
        data = resp.json()
        assert data["mode"] == "dry-run"
        assert data["batch"]["batch_id"] == "STD-2026-W06"
        assert data["batch"]["total_orders"] == 2
        assert data["batch"]["total_revenue"] == 74.99
        assert await store_group.record_store.find_tasks_by_batch_id("STD-2026-W06") == []

    async def test_created_then_exists(self, client: AsyncClient, seeded_week):
        first = await client.post("/batch-job", headers=BEARER)
        assert first.status_code == 200
        created = first.json()
        assert created["status"] == "created"
        assert created["task_id"]
        assert created["batch"]["aggregated_items"] == {
            "hoodies": {"128": 2},
            "tshirts": {"98/104": 1},
        }
        assert created["batch"]["event_names"] == ["Grundschule Nord", "Grundschule Süd"]

        second = (await client.post("/batch-job", headers=BEARER)).json()
        assert second["status"] == "exists"
        assert second["task_id"] == created["task_id"]

    async def test_dry_run_with_existing_batch(self, client: AsyncClient, seeded_week, store_group):
        created = (await client.post("/batch-job", headers=BEARER)).json()

        preview = (await client.post("/batch-job?dryRun=true", headers=BEARER)).json()
        assert set(preview) == {"mode", "batch"}
        assert preview["mode"] == "dry-run"
        assert preview["batch"]["order_ids"] == created["batch"]["order_ids"]
        assert preview["batch"]["task_id"] == created["task_id"]
        assert len(await store_group.record_store.find_tasks_by_batch_id("STD-2026-W06")) == 1

    async def test_skipped_without_orders(self, client: AsyncClient):
        resp = await client.post("/batch-job", headers=BEARER)
        assert resp.json() == {
            "status": "skipped",
            "reason": "no_orders",
            "batch_id": "STD-2026-W06",
            "week_start": "2026-02-02",
            "week_end": "2026-02-08",
        }

    async def test_describe(self, client: AsyncClient):
        resp = await client.get("/batch-job", headers=BEARER)
        assert resp.status_code == 200
        data = resp.json()
        assert data["method"] == "POST"
        assert data["week_start"] == "2026-02-02"
        assert data["week_end"] == "2026-02-08"

    async def test_describe_requires_secret(self, client: AsyncClient):
        resp = await client.get("/batch-job")
        assert resp.status_code == 401
