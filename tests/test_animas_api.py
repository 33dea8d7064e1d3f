import pytest

from tests.helpers import anima_client, create_anima, png_bytes


@pytest.mark.asyncio
async def test_api_requires_auth():
    async with anima_client(auth_token=None) as client:
        resp = await client.get("/api/animas")
        assert resp.status_code == 401
        resp = await client.post("/api/animas", json={"species": "Pyra", "evolutionary_line": "Ember"})
        assert resp.status_code == 401


@pytest.mark.asyncio
async def test_create_and_get_anima():
    async with anima_client() as client:
        created = await create_anima(client, "Pyra", attack=100, defense=50, max_health=200, critical_chance=20, attack_speed_seconds=5)
        assert created["id"]
        assert created["created_at"]
        assert created["power_score"] == 270
        assert created["evolves_into"] == "—"

        read = await client.get(f"/api/animas/{created['id']}")
        assert read.status_code == 200
        assert read.json()["anima"]["species"] == "Pyra"


@pytest.mark.asyncio
async def test_create_requires_species_and_line():
    async with anima_client() as client:
        resp = await client.post("/api/animas", json={"species": "Pyra"})
        assert resp.status_code == 400
        assert resp.json()["status"] == "error"

        listed = await client.get("/api/animas")
        assert listed.json()["stats"]["total"] == 0


@pytest.mark.asyncio
async def test_list_filters_sorts_and_stats():
    async with anima_client() as client:
        await create_anima(client, "Zenith", line="Sky", attribute="water", attack=90)
        await create_anima(client, "Aqualis", line="Tide", attribute="water", attack=10)
        await create_anima(client, "Mossen", line="Grove", attribute="plant", attack=20)

        by_name = await client.get("/api/animas?sort=name")
        assert [a["species"] for a in by_name.json()["items"]] == ["Aqualis", "Mossen", "Zenith"]

        water = await client.get("/api/animas?attribute=water&sort=strongest")
        body = water.json()
        assert [a["species"] for a in body["items"]] == ["Zenith", "Aqualis"]
        assert body["stats"]["total"] == 3
        assert body["stats"]["evolutionary_lines"] == 3
        assert body["stats"]["avg_attack"] == 40
        assert body["evolutionary_lines"] == ["Grove", "Sky", "Tide"]

        search = await client.get("/api/animas", params={"q": " GROVE "})
        assert [a["species"] for a in search.json()["items"]] == ["Mossen"]


@pytest.mark.asyncio
async def test_unknown_attribute_filter_rejected():
    async with anima_client() as client:
        resp = await client.get("/api/animas?attribute=lightning")
        assert resp.status_code == 400


@pytest.mark.asyncio
async def test_evolution_reference_resolution():
    async with anima_client() as client:
        bloom = await create_anima(client, "Bloom", line="Grove", attribute="plant")
        sprout = await create_anima(client, "Sprout", line="Grove", attribute="plant", next_evolution_id=bloom["id"])
        wisp = await create_anima(client, "Wisp", next_evolution_id="ghost-id")
        items = {a["id"]: a for a in (await client.get("/api/animas")).json()["items"]}
        assert items[sprout["id"]]["evolves_into"] == "Bloom"
        assert items[wisp["id"]]["evolves_into"] == "—"
        assert items[wisp["id"]]["next_evolution_id"] == "ghost-id"


@pytest.mark.asyncio
async def test_update_is_partial_and_keeps_created_at():
    async with anima_client() as client:
        created = await create_anima(client, "Pyra", attack=15)
        resp = await client.put(f"/api/animas/{created['id']}", json={"species": "Pyrax", "defense": 33})
        assert resp.status_code == 200
        updated = resp.json()["anima"]
        assert updated["species"] == "Pyrax"
        assert updated["defense"] == 33
        assert updated["attack"] == 15
        assert updated["created_at"] == created["created_at"]

        blank = await client.put(f"/api/animas/{created['id']}", json={"evolutionary_line": "  "})
        assert blank.status_code == 400


@pytest.mark.asyncio
async def test_update_and_delete_missing_return_404():
    async with anima_client() as client:
        assert (await client.put("/api/animas/nope", json={"species": "x"})).status_code == 404
        assert (await client.delete("/api/animas/nope")).status_code == 404
        assert (await client.get("/api/animas/nope")).status_code == 404


@pytest.mark.asyncio
async def test_delete_anima():
    async with anima_client() as client:
        created = await create_anima(client, "Pyra")
        resp = await client.delete(f"/api/animas/{created['id']}")
        assert resp.status_code == 200
        assert resp.json()["deleted"] == created["id"]
        listed = await client.get("/api/animas")
        assert listed.json()["items"] == []


@pytest.mark.asyncio
async def test_preview_applies_auto_balance():
    async with anima_client() as client:
        resp = await client.post(
            "/api/animas/preview",
            json={"draft": {"attack": "10", "defense": "10"}, "field": "attack", "value": "50", "auto_balance": True},
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["draft"]["max_health"] == "120"
        assert body["power_score"] == 118

        plain = await client.post("/api/animas/preview", json={"draft": {"attack": "abc"}})
        assert plain.json()["power_score"] == 0


@pytest.mark.asyncio
async def test_image_upload_returns_data_url():
    async with anima_client() as client:
        resp = await client.post("/api/animas/image", files={"file": ("pic.png", png_bytes(), "image/png")})
        assert resp.status_code == 200
        assert resp.json()["image_url"].startswith("data:image/png;base64,")

        bad = await client.post("/api/animas/image", files={"file": ("notes.txt", b"text", "text/plain")})
        assert bad.status_code == 400


@pytest.mark.asyncio
async def test_image_upload_rejects_oversize():
    big = b"x" * (70 * 1024)
    async with anima_client() as client:
        resp = await client.post("/api/animas/image", files={"file": ("big.png", big, "image/png")})
        assert resp.status_code == 400
