from functools import lru_cache
from urllib.parse import urlparse
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.database import Database
from settings import settings

def _is_mock(uri: str) -> bool:
    return (uri or "").startswith("mongomock://")

@lru_cache
def get_client() -> MongoClient:
    uri = settings.mongodb_uri
    if not uri or "xxxx.mongodb.net" in uri or "example.com" in uri:
        raise RuntimeError("MONGODB_URI is missing or still a placeholder.")
    if _is_mock(uri):
        import mongomock
        return mongomock.MongoClient()
    return MongoClient(uri)

def _db_name_from_uri_fallback() -> str:
    if settings.db_name:
        return settings.db_name
    if _is_mock(settings.mongodb_uri):
        return "anima"
    u = urlparse(settings.mongodb_uri or "")
    return (u.path or "").lstrip("/") or "anima"

def get_db() -> Database:
    return get_client()[_db_name_from_uri_fallback()]

def get_col(name: str):
    return get_db()[name]

def ensure_indexes() -> None:
    db = get_db()
    db.animas.create_index("id", unique=True)
    db.animas.create_index([("created_at", DESCENDING)])
    db.animas.create_index("evolutionary_line")
    db.users.create_index("email", unique=True)
    db.audit_logs.create_index([("anima_id", ASCENDING), ("ts", DESCENDING)])
