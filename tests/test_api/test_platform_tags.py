"""
Tests for platform tag endpoints.
"""

import pytest
from httpx import AsyncClient

BASE = "/api/v1/platform/tags"


async def create(client: AsyncClient, **data) -> dict:
    response = await client.post(BASE, json=data)
    assert response.status_code == 201, response.text
    return response.json()


class TestCreatePlatformTag:
    """Tests for platform tag creation."""

    @pytest.mark.asyncio
    async def test_create_tag(self, client: AsyncClient, sample_tag_data):
        """Test creating a platform tag."""
        response = await client.post(BASE, json=sample_tag_data)

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Photography"
        assert data["slug"] == "photography"
        assert data["scope"] == "platform"
        assert data["tenantId"] is None
        assert data["usageCount"] == 0
        assert data["isActive"] is True
        assert data["inheritedByTenants"] is None
        assert "uuid" in data
        assert "createdAt" in data

    @pytest.mark.asyncio
    async def test_duplicate_slug_conflict(self, client: AsyncClient, sample_tag_data):
        await client.post(BASE, json=sample_tag_data)

        response = await client.post(BASE, json=sample_tag_data)

        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "tag_slug_exists"
        assert data["details"]["slug"] == "photography"

    @pytest.mark.asyncio
    async def test_missing_name_is_400(self, client: AsyncClient):
        """Malformed bodies use the same error envelope with status 400."""
        response = await client.post(BASE, json={"description": "no name"})

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "validation_failed"
        assert data["details"]["errors"][0]["loc"] == ["body", "name"]

    @pytest.mark.asyncio
    async def test_requires_admin_scope(self, client: AsyncClient, as_user, sample_tag_data):
        as_user(tenant_id=1, scopes=["tags:read", "tags:write"])

        response = await client.post(BASE, json=sample_tag_data)

        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

    @pytest.mark.asyncio
    async def test_bulk_create_partial(self, client: AsyncClient):
        response = await client.post(
            f"{BASE}/bulk",
            json={"tags": [{"name": "Retail"}, {"name": "Retail"}, {"name": "Finance"}]},
        )

        assert response.status_code == 207
        data = response.json()
        assert data["created"] == 2
        assert data["failed"] == 1
        assert data["errors"][0]["index"] == 1

    @pytest.mark.asyncio
    async def test_bulk_create_all_ok(self, client: AsyncClient):
        response = await client.post(f"{BASE}/bulk", json={"tags": [{"name": "Retail"}]})

        assert response.status_code == 201


class TestReadPlatformTags:
    @pytest.mark.asyncio
    async def test_list_with_filters(self, client: AsyncClient):
        await create(client, name="Photography", category="skills")
        await create(client, name="Retail", category="industry")
        await create(client, name="Old", category="skills", isActive=False)

        response = await client.get(BASE, params={"category": "skills"})

        assert response.status_code == 200
        data = response.json()
        assert [t["name"] for t in data["items"]] == ["Photography"]
        assert data["pagination"] == {"page": 1, "limit": 20, "total": 1, "totalPages": 1}

        response = await client.get(BASE, params={"category": "skills", "includeInactive": "true"})
        assert len(response.json()["items"]) == 2

    @pytest.mark.asyncio
    async def test_search(self, client: AsyncClient):
        await create(client, name="Photography", description="Portrait sessions")
        await create(client, name="Retail")

        response = await client.get(BASE, params={"search": "portrait"})

        assert [t["name"] for t in response.json()["items"]] == ["Photography"]

    @pytest.mark.asyncio
    async def test_get_not_found(self, client: AsyncClient):
        response = await client.get(f"{BASE}/00000000-0000-0000-0000-000000000000")

        assert response.status_code == 404
        assert response.json()["error"] == "tag_not_found"

    @pytest.mark.asyncio
    async def test_tree(self, client: AsyncClient):
        root = await create(client, name="Industry")
        await create(client, name="Retail", parentUuid=root["uuid"])

        response = await client.get(f"{BASE}/tree")

        assert response.status_code == 200
        data = response.json()
        assert data["maxDepth"] == 5
        assert data["items"][0]["name"] == "Industry"
        assert data["items"][0]["children"][0]["path"] == ["Industry", "Retail"]

    @pytest.mark.asyncio
    async def test_categories_and_stats(self, client: AsyncClient):
        await create(client, name="Photography", category="skills")
        await create(client, name="Retail", category="industry")

        categories = (await client.get(f"{BASE}/categories")).json()
        stats = (await client.get(f"{BASE}/stats")).json()

        assert categories == {"categories": ["industry", "skills"]}
        assert stats["total"] == 2
        assert stats["unused"] == 2


class TestMutatePlatformTags:
    @pytest.mark.asyncio
    async def test_update(self, client: AsyncClient):
        tag = await create(client, name="Photo")

        response = await client.patch(f"{BASE}/{tag['uuid']}", json={"name": "Photography", "isFeatured": True})

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Photography"
        assert data["isFeatured"] is True
        assert data["slug"] == "photo"

    @pytest.mark.asyncio
    async def test_system_tag_protected(self, client: AsyncClient):
        tag = await create(client, name="Core", isSystem=True)

        response = await client.patch(f"{BASE}/{tag['uuid']}", json={"name": "Other"})
        assert response.status_code == 403
        assert response.json()["error"] == "system_tag_protected"

        response = await client.delete(f"{BASE}/{tag['uuid']}")
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_move_cycle(self, client: AsyncClient):
        a = await create(client, name="A")
        b = await create(client, name="B", parentUuid=a["uuid"])
        c = await create(client, name="C", parentUuid=b["uuid"])

        response = await client.post(f"{BASE}/{a['uuid']}/move", json={"parentUuid": c["uuid"]})

        assert response.status_code == 409
        assert response.json()["error"] == "tag_cycle_detected"

    @pytest.mark.asyncio
    async def test_move_to_root(self, client: AsyncClient):
        a = await create(client, name="A")
        b = await create(client, name="B", parentUuid=a["uuid"])

        response = await client.post(f"{BASE}/{b['uuid']}/move", json={"parentUuid": None})

        assert response.status_code == 200
        assert response.json()["parentId"] is None

    @pytest.mark.asyncio
    async def test_max_depth(self, client: AsyncClient):
        parent = None
        for level in range(5):
            parent = await create(client, name=f"Level {level}", parentUuid=parent and parent["uuid"])

        response = await client.post(BASE, json={"name": "Too deep", "parentUuid": parent["uuid"]})

        assert response.status_code == 422
        assert response.json()["error"] == "tag_max_depth_exceeded"

    @pytest.mark.asyncio
    async def test_hard_and_soft_delete(self, client: AsyncClient):
        hard = await create(client, name="Hard")
        soft = await create(client, name="Soft")

        response = await client.delete(f"{BASE}/{hard['uuid']}")
        assert response.status_code == 204

        response = await client.delete(f"{BASE}/{soft['uuid']}", params={"soft": "true"})
        assert response.status_code == 200
        assert response.json()["isActive"] is False

        assert (await client.get(f"{BASE}/{hard['uuid']}")).status_code == 404


class TestGrantRevoke:
    @pytest.mark.asyncio
    async def test_grant_and_revoke(self, client: AsyncClient):
        tag = await create(client, name="Retail")

        response = await client.post(f"{BASE}/{tag['uuid']}/grant", json={"tenantIds": [1, 2]})
        assert response.status_code == 200
        assert response.json() == {"granted": 2, "skipped": 0}

        listed = (await client.get(BASE)).json()
        assert listed["items"][0]["inheritedByTenants"] == 2

        response = await client.delete(f"{BASE}/{tag['uuid']}")
        assert response.status_code == 409
        assert response.json()["error"] == "tag_inherited"

        response = await client.post(f"{BASE}/{tag['uuid']}/revoke", json={"revokeFromAll": True})
        assert response.json() == {"revoked": 2}

        response = await client.delete(f"{BASE}/{tag['uuid']}")
        assert response.status_code == 204

    @pytest.mark.asyncio
    async def test_grant_without_tenants_is_400(self, client: AsyncClient):
        tag = await create(client, name="Retail")

        response = await client.post(f"{BASE}/{tag['uuid']}/grant", json={"tenantIds": []})

        assert response.status_code == 400
