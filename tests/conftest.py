import os

import pytest

os.environ.setdefault("MONGODB_URI", "mongomock://localhost")
os.environ.setdefault("AUTH_ENABLED", "true")
os.environ.setdefault("MAX_IMAGE_BYTES", "65536")

from db_mongo import get_db
from server.src.modules.authentification_helpers import SESSIONS


@pytest.fixture(autouse=True)
def clean_state():
    db = get_db()
    for name in db.list_collection_names():
        db.drop_collection(name)
    SESSIONS.clear()
    yield
    SESSIONS.clear()
