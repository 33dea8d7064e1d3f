import hashlib
import io
import time
from contextlib import asynccontextmanager

from httpx import ASGITransport, AsyncClient
from PIL import Image

from db_mongo import get_db
from main import app
from server.src.modules.authentification_helpers import SESSIONS, Session
from server.src.objects.animas import Anima


@asynccontextmanager
async def anima_client(
    auth_token: str | None = "test-token",
    email: str = "tester@example.com",
    role: str = "admin",
    use_cookie: bool = False,
):
    headers: dict[str, str] = {}
    if auth_token:
        SESSIONS[auth_token] = Session(email=email, role=role, expires_at=time.time() + 3600)
        if use_cookie:
            headers["Cookie"] = f"anima_session={auth_token}"
        else:
            headers["Authorization"] = f"Bearer {auth_token}"
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test", headers=headers) as client:
        yield client


def seed_user(email: str, password: str, role: str = "admin") -> None:
    get_db()["users"].insert_one({
        "email": email,
        "password_hash": hashlib.sha256(password.encode("utf-8")).hexdigest(),
        "role": role,
    })


def make_anima(anima_id: str, species: str, **overrides) -> Anima:
    values = {
        "evolutionary_line": "Ember",
        "attack": 10,
        "defense": 10,
        "max_health": 50,
        "attack_speed_seconds": 1.0,
        "critical_chance": 5.0,
        "attribute": "fire",
        "created_at": "2024-01-01T00:00:00Z",
    }
    values.update(overrides)
    return Anima(id=anima_id, species=species, **values)


def png_bytes(size=(4, 4)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, (0, 128, 255, 255)).save(buf, format="PNG")
    return buf.getvalue()


async def create_anima(client, species: str, line: str = "Ember", **extra):
    payload = {
        "species": species,
        "evolutionary_line": line,
        "attack": 10,
        "defense": 10,
        "max_health": 50,
        "attack_speed_seconds": 1,
        "critical_chance": 5,
        "attribute": "fire",
    }
    payload.update(extra)
    resp = await client.post("/api/animas", json=payload)
    resp.raise_for_status()
    return resp.json()["anima"]
