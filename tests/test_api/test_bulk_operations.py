"""
Tests for bulk operation endpoints.
"""

import pytest
from httpx import AsyncClient

BASE = "/api/v1/bulk-operations"
TENANT_TAGS = "/api/v1/tenants/1/tags"


async def make_tags(client: AsyncClient, url: str, *names) -> list[str]:
    uuids = []
    for name in names:
        response = await client.post(url, json={"name": name})
        assert response.status_code == 201, response.text
        uuids.append(response.json()["uuid"])
    return uuids


async def start(client: AsyncClient, **data) -> dict:
    response = await client.post(BASE, json=data)
    assert response.status_code == 202, response.text
    return response.json()


class TestBulkOperationLifecycle:
    @pytest.mark.asyncio
    async def test_create_and_run(self, client: AsyncClient):
        uuids = await make_tags(client, TENANT_TAGS, "A", "B", "C")

        op = await start(client, type="deactivate", scope="tenant", tenantId=1, tagUuids=uuids)
        assert op["status"] == "pending"
        assert op["totalItems"] == 3
        assert op["progress"] == 0

        response = await client.post(f"{BASE}/{op['id']}/run")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "completed"
        assert data["processedItems"] == 3
        assert data["progress"] == 100

        listed = (await client.get(TENANT_TAGS)).json()
        assert listed["items"] == []

    @pytest.mark.asyncio
    async def test_max_items_pauses(self, client: AsyncClient):
        uuids = await make_tags(client, TENANT_TAGS, "A", "B", "C")
        op = await start(client, type="feature", scope="tenant", tenantId=1, tagUuids=uuids)

        data = (await client.post(f"{BASE}/{op['id']}/run", params={"maxItems": 2})).json()
        assert data["status"] == "paused"
        assert data["pendingItemIds"] == [uuids[2]]

        data = (await client.post(f"{BASE}/{op['id']}/run")).json()
        assert data["status"] == "completed"

    @pytest.mark.asyncio
    async def test_failure_and_retry(self, client: AsyncClient):
        uuids = await make_tags(client, TENANT_TAGS, "A", "B")
        entity = "/api/v1/tenants/1/entities/profile/p-1/tags"
        await client.post(entity, json={"tagUuids": [uuids[1]]})
        op = await start(client, type="delete", scope="tenant", tenantId=1, tagUuids=uuids)

        data = (await client.post(f"{BASE}/{op['id']}/run")).json()
        assert data["status"] == "failed"
        assert data["failedItemIds"] == [uuids[1]]
        assert data["errors"] == [
            {"itemId": uuids[1], "error": "tag_in_use", "message": "Cannot delete tag in use by 1 entities"}
        ]

        await client.request("DELETE", entity, json={"tagUuids": [uuids[1]]})

        response = await client.post(f"{BASE}/{op['id']}/retry")
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    @pytest.mark.asyncio
    async def test_invalid_transitions(self, client: AsyncClient):
        uuids = await make_tags(client, TENANT_TAGS, "A")
        op = await start(client, type="feature", scope="tenant", tenantId=1, tagUuids=uuids)

        response = await client.post(f"{BASE}/{op['id']}/pause")
        assert response.status_code == 409
        assert response.json()["error"] == "invalid_state_transition"

        response = await client.post(f"{BASE}/{op['id']}/retry")
        assert response.status_code == 409

        await client.post(f"{BASE}/{op['id']}/run")
        response = await client.post(f"{BASE}/{op['id']}/run")
        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_get_and_list(self, client: AsyncClient):
        uuids = await make_tags(client, TENANT_TAGS, "A")
        op = await start(client, type="feature", scope="tenant", tenantId=1, tagUuids=uuids)
        await start(client, type="feature", scope="platform", tagUuids=["x"])

        response = await client.get(f"{BASE}/{op['id']}")
        assert response.status_code == 200
        assert response.json()["id"] == op["id"]

        assert (await client.get(BASE)).json()["total"] == 2
        assert (await client.get(BASE, params={"tenantId": 1})).json()["total"] == 1
        assert (await client.get(BASE, params={"scope": "platform"})).json()["total"] == 1
        assert (await client.get(BASE, params={"status": "completed"})).json()["total"] == 0

    @pytest.mark.asyncio
    async def test_unknown_operation(self, client: AsyncClient):
        response = await client.get(f"{BASE}/missing")

        assert response.status_code == 404
        assert response.json()["error"] == "bulk_operation_not_found"


class TestBulkOperationValidation:
    @pytest.mark.asyncio
    async def test_missing_options(self, client: AsyncClient):
        response = await client.post(
            BASE, json={"type": "set_category", "scope": "tenant", "tenantId": 1, "tagUuids": ["x"]}
        )

        assert response.status_code == 400
        assert response.json()["details"]["missing"] == ["category"]

    @pytest.mark.asyncio
    async def test_tenant_scope_requires_tenant(self, client: AsyncClient):
        response = await client.post(BASE, json={"type": "feature", "scope": "tenant", "tagUuids": ["x"]})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_type(self, client: AsyncClient):
        response = await client.post(
            BASE, json={"type": "explode", "scope": "tenant", "tenantId": 1, "tagUuids": ["x"]}
        )

        assert response.status_code == 400


class TestBulkOperationPermissions:
    @pytest.mark.asyncio
    async def test_platform_operation_requires_admin(self, client: AsyncClient, as_user):
        as_user(tenant_id=1, scopes=["tags:read", "tags:write"])

        response = await client.post(BASE, json={"type": "feature", "scope": "platform", "tagUuids": ["x"]})

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_other_tenant_forbidden(self, client: AsyncClient, as_user):
        as_user(tenant_id=1, scopes=["tags:read", "tags:write"])

        response = await client.post(
            BASE, json={"type": "feature", "scope": "tenant", "tenantId": 2, "tagUuids": ["x"]}
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_tenant_user_lists_own_operations(self, client: AsyncClient, as_user):
        await start(client, type="feature", scope="tenant", tenantId=1, tagUuids=["x"])
        await start(client, type="feature", scope="tenant", tenantId=2, tagUuids=["y"])
        as_user(tenant_id=1, scopes=["tags:read", "tags:write"])

        data = (await client.get(BASE)).json()

        assert data["total"] == 1
        assert data["items"][0]["tenantId"] == 1

    @pytest.mark.asyncio
    async def test_reads_require_read_scope(self, client: AsyncClient, as_user):
        op = await start(client, type="feature", scope="platform", tagUuids=["x"])
        as_user(tenant_id=1, scopes=[])

        response = await client.get(BASE, params={"scope": "platform"})
        assert response.status_code == 403
        assert response.json()["details"] == {"required": "tags:read"}

        assert (await client.get(f"{BASE}/{op['id']}")).status_code == 403
        assert (await client.get(BASE)).status_code == 403
