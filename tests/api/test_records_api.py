"""
Tests for the records API (CRUD, upserts, settings, class resets, images).
"""

from unittest.mock import patch

import pytest
from httpx import AsyncClient


class TestSimpleRecords:
    """Test add/update/delete endpoints."""

    async def test_add_class(self, admin_client: AsyncClient, engine, school) -> None:
        response = await admin_client.post(
            "/api/v1/records/classes", json={"id": "2", "name": "Kelompok B"}
        )

        assert response.status_code == 201
        assert response.json() == {"id": "2", "remote": "success", "message": None}
        assert school.tables["classes"]["2"]["name"] == "Kelompok B"
        assert engine.find_record("classes", "2").name == "Kelompok B"

    async def test_add_generates_missing_id(self, admin_client: AsyncClient, engine) -> None:
        with patch(
            "raporpaud.api.v1.records.make_timestamp_id", return_value="1718000000000"
        ):
            response = await admin_client.post(
                "/api/v1/records/students", json={"name": "Citra", "classId": 1}
            )

        assert response.status_code == 201
        assert response.json()["id"] == "1718000000000"
        assert engine.find_record("students", "1718000000000").class_id == "1"

    async def test_remote_failure_is_reported_not_rolled_back(
        self, admin_client: AsyncClient, engine, school
    ) -> None:
        school.fail("POST", "students", "new row violates row-level security policy")

        response = await admin_client.post(
            "/api/v1/records/students", json={"id": "13", "name": "Citra", "classId": "1"}
        )

        assert response.status_code == 201
        assert response.json() == {
            "id": "13",
            "remote": "error",
            "message": "new row violates row-level security policy",
        }
        assert engine.find_record("students", "13") is not None

    async def test_unknown_collection(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post("/api/v1/records/teachers", json={"id": "1"})

        assert response.status_code == 422

    async def test_invalid_record(self, admin_client: AsyncClient, engine) -> None:
        response = await admin_client.post(
            "/api/v1/records/classes", json={"id": "3", "name": ["not", "a", "name"]}
        )

        assert response.status_code == 422
        assert engine.find_record("classes", "3") is None

    async def test_update_learning_objective(self, admin_client: AsyncClient, school) -> None:
        response = await admin_client.put(
            "/api/v1/records/tps/21",
            json={"classId": 1, "category": "Quran", "description": "Membaca Iqro 2"},
        )

        assert response.status_code == 200
        assert response.json()["remote"] == "success"
        assert school.tables["tps"]["21"]["description"] == "Membaca Iqro 2"

    async def test_update_missing_record(self, admin_client: AsyncClient) -> None:
        response = await admin_client.put("/api/v1/records/classes/99", json={"name": "X"})

        assert response.status_code == 404
        assert response.json()["detail"] == "classes 99 not found"

    async def test_delete_student(self, admin_client: AsyncClient, engine, school) -> None:
        response = await admin_client.delete("/api/v1/records/students/12")

        assert response.status_code == 200
        assert "12" not in school.tables["students"]
        assert engine.find_record("students", "12") is None

    async def test_delete_missing_record(self, admin_client: AsyncClient) -> None:
        response = await admin_client.delete("/api/v1/records/reflections/404")

        assert response.status_code == 404


class TestUpsertRecords:
    """Test natural-key upsert endpoints."""

    async def test_second_write_keeps_first_id(self, admin_client: AsyncClient, school) -> None:
        first = await admin_client.put(
            "/api/v1/records/assessments",
            json={"id": "11-21", "studentId": 11, "tpId": 21, "score": 2},
        )
        second = await admin_client.put(
            "/api/v1/records/assessments",
            json={"id": "other", "studentId": "11", "tpId": "21", "score": 3},
        )

        assert first.json()["id"] == "11-21"
        assert second.json() == {"id": "11-21", "remote": "success", "message": None}
        assert list(school.tables["assessments"]) == ["11-21"]
        assert school.tables["assessments"]["11-21"]["score"] == 3

    @pytest.mark.parametrize(
        "collection,record,table",
        [
            ("category-results", {"studentId": "11", "category": "Quran"}, "category_results"),
            ("p5-assessments", {"studentId": "11", "criteriaId": "P1"}, "p5_assessments"),
            ("reflection-answers", {"questionId": "Q1", "studentId": "11"}, "reflection_answers"),
            ("notes", {"studentId": "11", "note": "rajin"}, "notes"),
            ("attendance", {"studentId": "11", "sick": 1}, "attendance"),
        ],
    )
    async def test_upsert_collections(
        self, admin_client: AsyncClient, school, collection, record, table
    ) -> None:
        response = await admin_client.put(
            f"/api/v1/records/{collection}", json={"id": "r1", **record}
        )

        assert response.status_code == 200
        assert response.json()["id"] == "r1"
        assert list(school.tables[table]) == ["r1"]

    async def test_simple_collection_has_no_upsert(self, admin_client: AsyncClient) -> None:
        response = await admin_client.put("/api/v1/records/classes", json={"id": "1"})

        assert response.status_code == 422


class TestSettingsEndpoint:
    """Test the settings singleton endpoint."""

    async def test_put_settings(self, admin_client: AsyncClient, engine, school) -> None:
        response = await admin_client.put(
            "/api/v1/settings", json={"name": "TK Pelita", "semester": "1"}
        )

        assert response.status_code == 200
        assert response.json()["id"] == "global_settings"
        assert engine.settings.name == "TK Pelita"
        assert school.tables["settings"]["global_settings"]["name"] == "TK Pelita"


class TestClassResets:
    """Test per-class data resets."""

    async def test_clear_intra_category(self, admin_client: AsyncClient, engine, school) -> None:
        await engine.upsert_assessment({"id": "11-21", "studentId": "11", "tpId": "21"})
        await engine.upsert_assessment({"id": "11-22", "studentId": "11", "tpId": "22"})

        response = await admin_client.post(
            "/api/v1/classes/1/clear-intra", json={"category": "Quran"}
        )

        assert response.status_code == 200
        assert response.json() == {"cleared": True}
        assert list(school.tables["assessments"]) == ["11-22"]
        assert [a.id for a in engine.state.assessments] == ["11-22"]

    async def test_clear_intra_failure(self, admin_client: AsyncClient, engine, school) -> None:
        await engine.upsert_assessment({"id": "11-21", "studentId": "11", "tpId": "21"})
        school.fail("DELETE", "assessments", "permission denied")

        response = await admin_client.post(
            "/api/v1/classes/1/clear-intra", json={"category": "Quran"}
        )

        assert response.status_code == 502
        assert response.json()["detail"] == "Failed to reset data: permission denied"

    async def test_clear_p5(self, admin_client: AsyncClient, engine, school) -> None:
        await engine.upsert_p5_assessment(
            {"id": "11-P1", "studentId": "11", "criteriaId": "P1", "score": 2}
        )

        response = await admin_client.post("/api/v1/classes/1/clear-p5")

        assert response.status_code == 200
        assert school.rows("p5_assessments") == []


class TestImages:
    """Test image uploads."""

    async def test_upload_logo(self, admin_client: AsyncClient, school) -> None:
        response = await admin_client.post(
            "/api/v1/images/school",
            params={"file_name": "logo.png"},
            content=b"\x89PNG",
            headers={"Content-Type": "image/png"},
        )

        assert response.status_code == 201
        assert response.json()["url"] == (
            "https://school.supabase.co/storage/v1/object/public/images/school/logo.png"
        )
        assert school.uploads["images/school/logo.png"] == b"\x89PNG"

    async def test_upload_failure(self, admin_client: AsyncClient, engine, school) -> None:
        school.fail("POST", "storage", "Bucket not found", status=404)

        response = await admin_client.post(
            "/api/v1/images/students", content=b"jpeg-bytes", headers={"Content-Type": "image/jpeg"}
        )

        assert response.status_code == 502
        assert engine.notifications.errors[-1].message == "Image upload failed."

    async def test_empty_body(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post("/api/v1/images/school", content=b"")

        assert response.status_code == 400

    async def test_unknown_folder(self, admin_client: AsyncClient) -> None:
        response = await admin_client.post("/api/v1/images/other", content=b"x")

        assert response.status_code == 422
