"""
Tests for the administration API.
"""

from httpx import AsyncClient


class TestOrphans:
    """Test the audit and the confirmed cleanup."""

    async def test_orphan_report(self, admin_client: AsyncClient, engine, school) -> None:
        school.seed("notes", {"id": "n1", "student_id": 777})
        await engine.refresh_data()

        response = await admin_client.get("/api/v1/admin/orphans")

        data = response.json()
        assert data["total"] == 1
        assert data["orphans"]["notes"] == ["n1"]
        assert data["orphans"]["students"] == []

    async def test_cleanup_when_clean_completes_immediately(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post("/api/v1/admin/cleanup")

        assert response.json()["status"] == "completed"
        assert response.json()["result"] == 0

    async def test_cleanup_confirmed(self, admin_client: AsyncClient, engine, school) -> None:
        school.seed("notes", {"id": "n1", "student_id": 777})
        await engine.refresh_data()

        started = await admin_client.post("/api/v1/admin/cleanup")
        assert started.json()["status"] == "awaiting_confirmation"
        assert started.json()["confirmation"]["title"] == "Database Cleanup"

        pending = await admin_client.get("/api/v1/admin/confirmation")
        assert pending.json()["open"] is True

        confirmed = await admin_client.post("/api/v1/admin/confirmation/confirm")

        assert confirmed.json() == {"status": "completed", "result": 1, "confirmation": None}
        assert school.rows("notes") == []
        closed = await admin_client.get("/api/v1/admin/confirmation")
        assert closed.json()["open"] is False

    async def test_cleanup_cancelled(self, admin_client: AsyncClient, engine, school) -> None:
        school.seed("notes", {"id": "n1", "student_id": 777})
        await engine.refresh_data()
        await admin_client.post("/api/v1/admin/cleanup")

        cancelled = await admin_client.post("/api/v1/admin/confirmation/cancel")

        assert cancelled.json()["status"] == "cancelled"
        assert cancelled.json()["result"] == 0
        assert len(school.rows("notes")) == 1

    async def test_confirm_without_pending_request(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post("/api/v1/admin/confirmation/confirm")

        assert response.status_code == 409


class TestReset:
    """Test the confirmed reset."""

    async def test_reset_waits_for_confirmation(self, admin_client: AsyncClient, school) -> None:
        started = await admin_client.post(
            "/api/v1/admin/reset", json={"keep_learning_objectives": True}
        )

        assert started.json()["status"] == "awaiting_confirmation"
        assert started.json()["confirmation"]["variant"] == "danger"
        assert len(school.rows("students")) == 2

        confirmed = await admin_client.post("/api/v1/admin/confirmation/confirm")

        assert confirmed.json()["result"] is True
        assert school.rows("students") == []
        assert len(school.rows("tps")) == 2

    async def test_reset_cancelled(self, admin_client: AsyncClient, school) -> None:
        await admin_client.post("/api/v1/admin/reset", json={})

        cancelled = await admin_client.post("/api/v1/admin/confirmation/cancel")

        assert cancelled.json() == {"status": "cancelled", "result": False, "confirmation": None}
        assert len(school.rows("students")) == 2


class TestBackupRestore:
    """Test backup download and restore upload."""

    async def test_backup_download(self, admin_client: AsyncClient) -> None:
        response = await admin_client.get("/api/v1/admin/backup")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/json"
        assert 'filename="Backup_Rapor_PAUD_' in response.headers["content-disposition"]
        assert response.json()["schemaVersion"] == 1

    async def test_restore_round_trip(self, admin_client: AsyncClient, engine, school) -> None:
        backup = (await admin_client.get("/api/v1/admin/backup")).json()
        await engine.delete_student("12")

        response = await admin_client.post("/api/v1/admin/restore", json=backup)

        assert response.json() == {"restored": True}
        assert {s.id for s in engine.state.students} == {"11", "12"}
        assert "12" in school.tables["students"]

    async def test_restore_rejects_unknown_version(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post(
            "/api/v1/admin/restore", json={"schemaVersion": 7}
        )

        assert response.status_code == 400
        assert "Unsupported backup schema version" in response.json()["detail"]

    async def test_restore_legacy_document(
        self, admin_client: AsyncClient, engine, school
    ) -> None:
        document = {
            "user": {"username": "ortu", "name": "Orang Tua", "role": "orangtua"},
            "classes": [{"id": 9, "name": "Kelompok C"}],
        }

        response = await admin_client.post("/api/v1/admin/restore", json=document)

        assert response.json() == {"restored": True}
        assert [c.id for c in engine.state.classes] == ["9"]
        assert engine.settings.name == "TK Harapan Bunda"
        assert school.tables["settings"]["global_settings"]["name"] == "TK Harapan Bunda"
