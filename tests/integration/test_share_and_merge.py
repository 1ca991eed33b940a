"""集成测试 -- 编辑、分享令牌、另一端修改、合并回本地"""

from httpx import AsyncClient
from meldtask.core.store import StoreGroup


async def _tasks(client: AsyncClient, project_id: str) -> dict[str, dict]:
    resp = await client.get(f"/api/projects/{project_id}")
    return {t["id"]: t for t in resp.json()["project"]["tasks"]}


class TestLifespan:
    async def test_state_initialized(self, integration_app) -> None:
        state = integration_app.state
        assert isinstance(state.store_group, StoreGroup)
        assert state.config.store_key == "integration"
        assert state.project_service is not None
        assert state.merge_hub is not None


class TestShareAndMerge:
    """完整的分享与合并流程"""

    async def test_roundtrip_between_devices(self, client: AsyncClient) -> None:
        # 本地：建立项目
        resp = await client.post("/api/projects", json={"project_name": "リリース準備"})
        project_id = resp.json()["project"]["id"]
        url = f"/api/projects/{project_id}"
        await client.post(f"{url}/tasks", json={"name": "ドキュメント"})
        await client.post(f"{url}/tasks", json={"name": "翻訳", "parent_id": "1"})
        await client.post(f"{url}/tasks", json={"name": "校正", "parent_id": "1"})
        token = (await client.get(f"{url}/token")).json()["token"]

        # 另一端：从令牌还原，完成一个任务并新增一个任务
        await client.delete(url)
        resp = await client.post("/api/decode", json={"token": token, "save": True})
        assert resp.status_code == 200
        await client.put(f"{url}/tasks/2/status", json={"status": 2})
        await client.post(f"{url}/tasks", json={"name": "告知"})
        remote_token = (await client.get(f"{url}/token")).json()["token"]

        # 本地：回到分享时的状态，删除 校正 后合并远端
        await client.post("/api/decode", json={"token": token, "save": True})
        await client.delete(f"{url}/tasks/3")
        resp = await client.post(f"{url}/merge", json={"token": remote_token})
        assert resp.status_code == 201
        rows = {row["id"]: row for row in resp.json()["rows"]}
        assert rows["4"]["action"] == "ADD_REMOTE"
        # 本地删除晚于远端最后修改，删除保持
        assert rows["3"]["action"] == "DELETE"

        await client.put(f"{url}/merge/priority", json={"priority": "REMOTE"})
        resp = await client.post(f"{url}/merge/commit")
        assert resp.status_code == 200
        assert resp.json()["status"] == "MERGED"

        tasks = await _tasks(client, project_id)
        assert tasks["2"]["status"] == 2
        assert tasks["3"]["is_deleted"] is True
        assert tasks["4"]["name"] == "告知"
        assert tasks["1"]["status"] == 2

        # 合并可以撤销
        resp = await client.post(f"{url}/undo")
        assert "4" not in {t["id"] for t in resp.json()["project"]["tasks"]}

    async def test_text_backup_restore(self, client: AsyncClient) -> None:
        resp = await client.post("/api/projects", json={"project_name": "backup"})
        url = f"/api/projects/{resp.json()['project']['id']}"
        await client.post(f"{url}/tasks", json={"name": "a, [b]"})
        before = (await client.get(url)).json()
        text = (await client.get(f"{url}/text")).json()["text"]

        await client.delete(url)
        resp = await client.post("/api/decode", json={"text": text, "save": True})
        assert resp.json() == before
