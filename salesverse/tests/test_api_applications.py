"""
API AOB : applications, documents, batch QC, approbation + notifications
"""

import pytest

from salesverse.config import new_id


def application_payload(**overrides):
    suffix = new_id()[:8]
    payload = {
        "first_name": "Lea",
        "last_name": "Garcia",
        "email_address": f"lea.{suffix}@example.com",
        "mobile_number": f"0921{int(suffix, 16) % 10**7:07d}",
    }
    payload.update(overrides)
    return payload


async def create_application(client, **overrides):
    response = await client.post("/api/aob/application", json=application_payload(**overrides))
    assert response.status_code == 201
    return response.json()["data"]


async def upload(client, application_id, document_type):
    response = await client.post("/api/aob/document", json={
        "application_id": application_id,
        "document_type": document_type,
        "document_format": "png",
        "document_name": f"{document_type}.png",
        "s3_key": f"aob/{application_id}/{document_type}.png",
    })
    assert response.status_code == 201
    return response.json()["data"]


class TestApplicationsApi:

    @pytest.mark.asyncio
    async def test_create_and_get(self, client):
        application = await create_application(client)

        body = (await client.get(f"/api/aob/application/{application['application_id']}")).json()
        assert body["data"]["application_status"] == "applicationSubmitted"
        assert body["data"]["documents"] == []

    @pytest.mark.asyncio
    async def test_duplicate(self, client):
        application = await create_application(client)

        response = await client.post("/api/aob/application", json=application_payload(
            email_address=application["email_address"],
        ))
        assert response.status_code == 409
        assert response.json()["message"] == "Email address already exists"

    @pytest.mark.asyncio
    async def test_list_unknown_status(self, client):
        response = await client.get("/api/aob/application", params={"status": "pending"})
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid status value"
        assert "approved" in response.json()["details"][0]

    @pytest.mark.asyncio
    async def test_unknown_application(self, client):
        response = await client.get("/api/aob/application/APP0")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_patch_returned(self, client):
        application = await create_application(client)

        response = await client.patch(f"/api/aob/application/{application['application_id']}", json={
            "type": "application", "status": "returned", "remarks": "missing signature",
        })

        body = response.json()
        assert body["message"] == "Application updated successfully"
        assert body["data"]["application_status"] == "returned"
        assert body["data"]["reject_remark"] == "missing signature"


class TestDocumentsApi:

    @pytest.mark.asyncio
    async def test_format_mismatch(self, client):
        application = await create_application(client)

        response = await client.post("/api/aob/document", json={
            "application_id": application["application_id"],
            "document_type": "valid_id",
            "document_format": "pdf",
            "document_name": "valid_id.png",
            "s3_key": "aob/valid_id.png",
        })
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_reject_requires_remarks(self, client):
        application = await create_application(client)
        document = await upload(client, application["application_id"], "valid_id")

        response = await client.post("/api/aob/document/batch-status", json={
            "application_id": application["application_id"],
            "documents": [{"document_id": document["document_id"], "document_status": "reject"}],
        })

        assert response.status_code == 400
        assert document["document_id"] in response.json()["message"]

    @pytest.mark.asyncio
    async def test_qc_history_and_details(self, client):
        application = await create_application(client)
        document = await upload(client, application["application_id"], "valid_id")
        await client.post("/api/aob/document/batch-status", json={
            "application_id": application["application_id"],
            "documents": [{"document_id": document["document_id"], "document_status": "reject", "remarks": "blurry"}],
        })

        history = (await client.get(
            "/api/aob/application/qcHistoryList", params={"document_id": document["document_id"]}
        )).json()["data"]
        assert [h["document_status"] for h in history] == ["reject", "documentSubmitted"]

        details = (await client.get(
            f"/api/aob/document/{application['application_id']}/{document['document_id']}"
        )).json()["data"]
        assert details["remarks"] == "blurry"


class TestApprovalApi:

    @pytest.mark.asyncio
    async def test_batch_approval_creates_agent_and_notifies(self, app, client, project, project_user):
        application = await create_application(client)
        documents = [await upload(client, application["application_id"], t) for t in ("valid_id", "photo")]

        response = await client.post("/api/aob/document/batch-status", json={
            "application_id": application["application_id"],
            "documents": [{"document_id": d["document_id"], "document_status": "approve"} for d in documents],
            "project_id": project["id"],
            "update_application_status": True,
        })

        data = response.json()["data"]
        assert data["application_status"] == "approved"
        agent = data["agent"]
        assert agent["agent_code"] == "IC00001"

        await app.state.services.notifier.drain()
        notifications = (await client.get(f"/api/notifications/{agent['id']}")).json()
        assert notifications["total"] == 1
        notification = notifications["data"][0]
        assert notification["type"] == "application_approved"

        response = await client.patch(
            f"/api/notifications/{notification['id']}/read", json={"recipient_id": agent["id"]}
        )
        assert response.json()["data"]["recipients"][0]["status"] == "read"

    @pytest.mark.asyncio
    async def test_patch_approval_envelope(self, client, project, project_user):
        application = await create_application(client)

        response = await client.patch(f"/api/aob/application/{application['application_id']}", json={
            "type": "application", "status": "approved", "project_id": project["id"],
        })

        body = response.json()
        assert body["message"] == "Application approved and agent created successfully"
        assert body["data"]["application"]["agent_id"] == body["data"]["agent"]["id"]

        again = await client.patch(f"/api/aob/application/{application['application_id']}", json={
            "type": "application", "status": "approved", "project_id": project["id"],
        })
        assert again.status_code == 409

    @pytest.mark.asyncio
    async def test_invalid_project_id_format(self, client):
        application = await create_application(client)
        response = await client.patch(f"/api/aob/application/{application['application_id']}", json={
            "type": "application", "status": "approved", "project_id": "ic",
        })
        assert response.status_code == 400
        assert response.json()["message"] == "Invalid project ID format"
