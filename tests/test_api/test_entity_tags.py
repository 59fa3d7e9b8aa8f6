"""
Tests for entity tagging endpoints.
"""

import pytest
from httpx import AsyncClient

TENANT_TAGS = "/api/v1/tenants/1/tags"
ENTITY = "/api/v1/tenants/1/entities/profile/p-100/tags"


async def create(client: AsyncClient, url: str, **data) -> dict:
    response = await client.post(url, json=data)
    assert response.status_code == 201, response.text
    return response.json()


class TestEntityTags:
    @pytest.mark.asyncio
    async def test_attach_list_detach(self, client: AsyncClient):
        photo = await create(client, TENANT_TAGS, name="Photography")
        video = await create(client, TENANT_TAGS, name="Video")

        response = await client.post(ENTITY, json={"tagUuids": [photo["uuid"], video["uuid"]]})
        assert response.status_code == 200
        data = response.json()
        assert data["entityType"] == "profile"
        assert data["entityId"] == "p-100"
        assert [t["name"] for t in data["tags"]] == ["Photography", "Video"]
        assert data["tags"][0]["usageCount"] == 1

        listed = (await client.get(ENTITY)).json()
        assert len(listed["tags"]) == 2

        response = await client.request("DELETE", ENTITY, json={"tagUuids": [photo["uuid"]]})
        assert response.status_code == 200
        assert [t["name"] for t in response.json()["tags"]] == ["Video"]

        tag = (await client.get(f"{TENANT_TAGS}/{photo['uuid']}")).json()
        assert tag["usageCount"] == 0

    @pytest.mark.asyncio
    async def test_tag_in_use_cannot_be_deleted(self, client: AsyncClient):
        tag = await create(client, TENANT_TAGS, name="Photography")
        for i in range(5):
            await client.post(
                f"/api/v1/tenants/1/entities/profile/p-{i}/tags",
                json={"tagUuids": [tag["uuid"]]},
            )

        response = await client.delete(f"{TENANT_TAGS}/{tag['uuid']}")

        assert response.status_code == 409
        data = response.json()
        assert data["error"] == "tag_in_use"
        assert data["details"]["usageCount"] == 5

    @pytest.mark.asyncio
    async def test_unknown_tag_is_404(self, client: AsyncClient):
        response = await client.post(ENTITY, json={"tagUuids": ["missing"]})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_other_tenant_tag_is_404(self, client: AsyncClient):
        foreign = await create(client, "/api/v1/tenants/2/tags", name="Foreign")

        response = await client.post(ENTITY, json={"tagUuids": [foreign["uuid"]]})

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_empty_tag_list_is_400(self, client: AsyncClient):
        response = await client.post(ENTITY, json={"tagUuids": []})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_inherited_platform_tag(self, client: AsyncClient):
        platform_tag = await create(client, "/api/v1/platform/tags", name="Retail")
        await client.post(
            f"/api/v1/platform/tags/{platform_tag['uuid']}/grant", json={"tenantIds": [1]}
        )

        response = await client.post(ENTITY, json={"tagUuids": [platform_tag["uuid"]]})

        assert response.status_code == 200
        assert response.json()["tags"][0]["inheritedFrom"] == "platform"


class TestEntityLookup:
    async def _seed(self, client: AsyncClient) -> tuple[dict, dict]:
        design = await create(client, TENANT_TAGS, name="Design")
        photo = await create(client, TENANT_TAGS, name="Photography")
        base = "/api/v1/tenants/1/entities"
        await client.post(f"{base}/profile/p-1/tags", json={"tagUuids": [design["uuid"], photo["uuid"]]})
        await client.post(f"{base}/profile/p-2/tags", json={"tagUuids": [design["uuid"]]})
        await client.post(f"{base}/listing/l-1/tags", json={"tagUuids": [photo["uuid"]]})
        return design, photo

    @pytest.mark.asyncio
    async def test_entities_by_tag(self, client: AsyncClient):
        design, _ = await self._seed(client)

        response = await client.get(f"{TENANT_TAGS}/{design['uuid']}/entities", params={"entityType": "profile"})
        assert response.status_code == 200
        data = response.json()
        assert data["tag"]["uuid"] == design["uuid"]
        assert data["total"] == 2
        assert {e["entityId"] for e in data["items"]} == {"p-1", "p-2"}
        assert "taggedAt" in data["items"][0]

    @pytest.mark.asyncio
    async def test_entities_by_unknown_tag_is_404(self, client: AsyncClient):
        response = await client.get(f"{TENANT_TAGS}/missing/entities")
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_search_entities(self, client: AsyncClient):
        design, photo = await self._seed(client)
        body = {"tagUuids": [design["uuid"], photo["uuid"]], "entityType": "profile"}

        response = await client.post("/api/v1/tenants/1/entities/search", json=body)
        assert response.status_code == 200
        items = response.json()["items"]
        assert [(i["entityId"], i["relevanceScore"]) for i in items] == [("p-1", 1.0), ("p-2", 0.5)]

        response = await client.post("/api/v1/tenants/1/entities/search", json={**body, "matchAll": True})
        assert [i["entityId"] for i in response.json()["items"]] == ["p-1"]

    @pytest.mark.asyncio
    async def test_search_requires_tags(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/tenants/1/entities/search", json={"tagUuids": [], "entityType": "profile"}
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_suggestions(self, client: AsyncClient):
        await create(client, TENANT_TAGS, name="Web Design")
        await create(client, TENANT_TAGS, name="Design")

        response = await client.get(f"{TENANT_TAGS}/suggestions", params={"q": "des"})
        assert response.status_code == 200
        data = response.json()
        assert data["query"] == "des"
        assert [t["name"] for t in data["items"]] == ["Design", "Web Design"]

    @pytest.mark.asyncio
    async def test_suggestions_require_query(self, client: AsyncClient):
        response = await client.get(f"{TENANT_TAGS}/suggestions")
        assert response.status_code == 400
