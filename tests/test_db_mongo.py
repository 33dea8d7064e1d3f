import db_mongo
from db_mongo import ensure_indexes, get_col, get_db


def test_module_exposes_only_connection_helpers():
    public = {name for name in vars(db_mongo) if not name.startswith("_") and callable(getattr(db_mongo, name))}
    assert {"get_client", "get_db", "get_col", "ensure_indexes"} <= public
    assert "norm_key" not in public


def test_ensure_indexes_is_repeatable():
    ensure_indexes()
    ensure_indexes()
    names = get_db()["animas"].index_information()
    assert any(info["key"] == [("id", 1)] and info.get("unique") for info in names.values())
    assert get_col("animas").name == "animas"
