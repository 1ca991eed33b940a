"""健康检查测试"""

from httpx import AsyncClient


class TestHealth:
    async def test_liveness(self, client: AsyncClient) -> None:
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    async def test_readiness(self, client: AsyncClient) -> None:
        resp = await client.get("/ready")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ready"
        assert body["checks"]["sqlite"] == "ok"
        assert body["checks"]["codec"] == "ok"
        assert body["checks"]["codec_versions"] == [0]
        assert body["checks"]["disk_space_mb"] >= 0

    async def test_readiness_sqlite_down(self, app, client: AsyncClient) -> None:
        await app.state.store_group.conn.close()
        resp = await client.get("/ready")
        assert resp.status_code == 503
        assert resp.json()["checks"]["sqlite"].startswith("error")
