"""
Integration tests for the question media import endpoint.
"""

from __future__ import annotations

import json

from httpx import AsyncClient

URL = "/api/v1/questions/media/import"


class TestQuestionMediaImport:
    """POST /api/v1/questions/media/import"""

    async def test_import_resolves_every_slot(
        self, async_client: AsyncClient, fake_store, fake_batches, png_bytes
    ):
        """A diagram shared by two questions is stored once."""
        manifest = [
            {
                "question_key": "phy-1",
                "image": "circuit.png",
                "solution_image": "solution.png",
                "option_images": ["opt-a.png", None],
            },
            {"question_key": "phy-2", "image": "circuit.png"},
        ]
        files = [
            ("files", ("circuit.png", png_bytes(color=(9, 9, 9, 255)), "image/png")),
            ("files", ("solution.png", png_bytes(color=(8, 8, 8, 255)), "image/png")),
            ("files", ("opt-a.png", png_bytes(color=(7, 7, 7, 255)), "image/png")),
        ]

        response = await async_client.post(
            URL,
            files=files,
            data={"manifest": json.dumps(manifest), "folder": "physics"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["failed_questions"] == []
        first, second = data["questions"]
        assert first["question_key"] == "phy-1"
        assert first["media_url"].startswith("https://cdn.test/physics/")
        assert first["solution_media_url"] != ""
        assert first["option_images"][0] != ""
        assert first["option_images"][1] == ""
        assert second["media_url"] == first["media_url"]
        assert len(fake_store.puts) == 3
        assert data["batch_id"] in fake_batches.reports

    async def test_failed_image_reported_per_question(self, async_client: AsyncClient, fake_store, png_bytes):
        broken = png_bytes(color=(1, 2, 3, 255))
        fake_store.fail_when = lambda key, data: data == broken
        manifest = [
            {"question_key": "q1", "image": "broken.png"},
            {"question_key": "q2", "image": "fine.png"},
        ]
        files = [
            ("files", ("broken.png", broken, "image/png")),
            ("files", ("fine.png", png_bytes(color=(3, 2, 1, 255)), "image/png")),
        ]

        data = (await async_client.post(URL, files=files, data={"manifest": json.dumps(manifest)})).json()

        assert data["failed_questions"] == ["q1"]
        assert data["questions"][0]["ok"] is False
        assert data["questions"][1]["ok"] is True

    async def test_missing_file_rejected(self, async_client: AsyncClient, png_bytes):
        manifest = [{"question_key": "q1", "image": "absent.png"}]

        response = await async_client.post(
            URL,
            files=[("files", ("other.png", png_bytes(), "image/png"))],
            data={"manifest": json.dumps(manifest)},
        )

        assert response.status_code == 422
        assert response.json()["detail"]["errors"] == [{"file": "absent.png", "error": "missing"}]

    async def test_invalid_json_manifest(self, async_client: AsyncClient, png_bytes):
        response = await async_client.post(
            URL,
            files=[("files", ("a.png", png_bytes(), "image/png"))],
            data={"manifest": "{not json"},
        )

        assert response.status_code == 422
        assert response.json()["error"] == "VALIDATION_ERROR"

    async def test_manifest_must_be_list(self, async_client: AsyncClient, png_bytes):
        response = await async_client.post(
            URL,
            files=[("files", ("a.png", png_bytes(), "image/png"))],
            data={"manifest": json.dumps({"question_key": "q1"})},
        )

        assert response.status_code == 422

    async def test_duplicate_question_keys(self, async_client: AsyncClient, png_bytes):
        manifest = [{"question_key": "q1"}, {"question_key": "q1"}]

        response = await async_client.post(
            URL,
            files=[("files", ("a.png", png_bytes(), "image/png"))],
            data={"manifest": json.dumps(manifest)},
        )

        assert response.status_code == 422
