"""
Integration tests for attachment upload and download.
"""

import pytest

from tests.factories import PDF_BYTES, PNG_BYTES, ticket_form

pytestmark = pytest.mark.integration


async def create_with_files(client, files):
    return await client.post("/api/tickets", data=ticket_form(), files=files)


class TestUploadOnCreate:

    async def test_ticket_with_attachments(self, settings, employee, agent):
        _, employee_client = employee
        _, agent_client = agent

        response = await create_with_files(employee_client, [
            ("attachments", ("report.pdf", PDF_BYTES, "application/pdf")),
            ("attachments", ("screen.png", PNG_BYTES, "image/png")),
        ])

        assert response.status_code == 201
        detail = (await employee_client.get(f"/api/tickets/{response.json()['id']}")).json()
        attachments = detail["attachments"]
        assert sorted(a["originalName"] for a in attachments) == ["report.pdf", "screen.png"]
        assert {a["size"] for a in attachments} == {len(PDF_BYTES), len(PNG_BYTES)}
        assert len(list(settings.upload_dir.iterdir())) == 2

        actions = [
            entry["action"]
            for entry in (await agent_client.get(f"/api/tickets/{response.json()['id']}/audit-logs")).json()
        ]
        assert actions.count("attachment_added") == 2

    async def test_disallowed_type_rejects_whole_ticket(self, settings, employee, agent):
        _, employee_client = employee
        _, agent_client = agent

        response = await create_with_files(employee_client, [
            ("attachments", ("report.pdf", PDF_BYTES, "application/pdf")),
            ("attachments", ("tool.exe", b"MZ\x90\x00", "application/x-msdownload")),
        ])

        assert response.status_code == 400
        assert response.json()["errors"][0]["field"] == "attachments"
        assert (await agent_client.get("/api/tickets")).json()["total"] == 0
        assert not any(settings.upload_dir.iterdir())

    async def test_file_over_limit(self, settings, employee):
        _, client = employee
        oversized = b"%PDF" + b"0" * settings.max_upload_bytes

        response = await create_with_files(client, [
            ("attachments", ("big.pdf", oversized, "application/pdf")),
        ])

        assert response.status_code == 400


class TestAddAttachments:

    async def test_attach_to_existing_ticket(self, employee):
        _, client = employee
        ticket = (await client.post("/api/tickets", data=ticket_form())).json()

        response = await client.post(
            f"/api/tickets/{ticket['id']}/attachments",
            files=[("attachments", ("scan.jpg", b"\xff\xd8\xff\xe0 jpeg", "image/jpeg"))],
        )

        assert response.status_code == 201
        assert response.json()[0]["mimeType"] == "image/jpeg"
        assert response.json()[0]["filename"].endswith(".jpg")

    async def test_other_employees_ticket(self, employee, login_as):
        _, owner_client = employee
        _, other_client = await login_as("employee")
        ticket = (await owner_client.post("/api/tickets", data=ticket_form())).json()

        response = await other_client.post(
            f"/api/tickets/{ticket['id']}/attachments",
            files=[("attachments", ("report.pdf", PDF_BYTES, "application/pdf"))],
        )

        assert response.status_code == 403


class TestDownload:

    async def test_download_returns_original_name(self, employee, agent):
        _, employee_client = employee
        _, agent_client = agent
        created = (await create_with_files(employee_client, [
            ("attachments", ("Quarterly Report.pdf", PDF_BYTES, "application/pdf")),
        ])).json()
        detail = (await employee_client.get(f"/api/tickets/{created['id']}")).json()
        attachment_id = detail["attachments"][0]["id"]

        response = await agent_client.get(f"/api/attachments/{attachment_id}/download")

        assert response.status_code == 200
        assert response.content == PDF_BYTES
        assert response.headers["content-type"] == "application/pdf"
        assert "Quarterly" in response.headers["content-disposition"]

    async def test_download_respects_ticket_visibility(self, employee, login_as):
        _, owner_client = employee
        _, other_client = await login_as("employee")
        created = (await create_with_files(owner_client, [
            ("attachments", ("report.pdf", PDF_BYTES, "application/pdf")),
        ])).json()
        detail = (await owner_client.get(f"/api/tickets/{created['id']}")).json()

        response = await other_client.get(f"/api/attachments/{detail['attachments'][0]['id']}/download")

        assert response.status_code == 403

    async def test_missing_file_on_disk(self, settings, employee):
        _, client = employee
        created = (await create_with_files(client, [
            ("attachments", ("report.pdf", PDF_BYTES, "application/pdf")),
        ])).json()
        attachment = (await client.get(f"/api/tickets/{created['id']}")).json()["attachments"][0]
        (settings.upload_dir / attachment["filename"]).unlink()

        response = await client.get(f"/api/attachments/{attachment['id']}/download")

        assert response.status_code == 404

    async def test_unknown_attachment(self, employee):
        _, client = employee

        response = await client.get("/api/attachments/00000000-0000-0000-0000-000000000000/download")

        assert response.status_code == 404
