from __future__ import annotations

import datetime
from uuid import uuid4
from typing import Any, Optional

from pymongo import DESCENDING
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from db_mongo import get_col
from server.src.modules.anima_errors import AnimaNotFound, StoreError
from server.src.modules.logging_helpers import logger, write_audit
from server.src.objects.animas import Anima, anima_from_doc


ANIMAS_COL = "animas"
_MUTABLE_FIELDS = (
    "species",
    "evolutionary_line",
    "next_evolution_id",
    "attack",
    "defense",
    "max_health",
    "attack_speed_seconds",
    "critical_chance",
    "image_url",
    "attribute",
)


def _now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat().replace("+00:00", "Z")


def _store_message(exc: Exception, operation: str) -> str:
    detail = str(getattr(exc, "details", None) or exc).strip()
    return f"Could not {operation} anima: {detail}" if detail else f"Could not {operation} anima."


class AnimaStore:
    """Mongo-backed record store for creatures.

    Mutations write an audit entry tagged with ``actor``; every driver
    failure is re-raised as ``StoreError``.
    """

    def __init__(self, collection: Optional[Collection] = None, actor: str = "system"):
        self.col = collection if collection is not None else get_col(ANIMAS_COL)
        self.actor = actor

    def list(self) -> list[Anima]:
        try:
            docs = list(self.col.find({}, {"_id": 0}).sort("created_at", DESCENDING))
        except PyMongoError as exc:
            logger.exception("list animas failed")
            raise StoreError(_store_message(exc, "load")) from exc
        return [anima_from_doc(d) for d in docs]

    def get(self, anima_id: str) -> Optional[Anima]:
        try:
            doc = self.col.find_one({"id": anima_id}, {"_id": 0})
        except PyMongoError as exc:
            logger.exception("get anima %s failed", anima_id)
            raise StoreError(_store_message(exc, "load")) from exc
        return anima_from_doc(doc) if doc else None

    def create(self, fields: dict[str, Any]) -> Anima:
        doc = {k: fields.get(k) for k in _MUTABLE_FIELDS}
        doc["id"] = uuid4().hex
        doc["created_at"] = _now_iso()
        try:
            self.col.insert_one(dict(doc))
        except PyMongoError as exc:
            logger.exception("create anima failed")
            raise StoreError(_store_message(exc, "create")) from exc
        logger.info("anima created: %s (%s) by %s", doc["id"], doc["species"], self.actor)
        self._audit("anima.create", doc["id"], None, doc)
        return anima_from_doc(doc)

    def update(self, anima_id: str, fields: dict[str, Any]) -> None:
        updates = {k: fields[k] for k in _MUTABLE_FIELDS if k in fields}
        try:
            before = self.col.find_one({"id": anima_id}, {"_id": 0})
            if not before:
                raise AnimaNotFound(f"Anima {anima_id} not found")
            self.col.update_one({"id": anima_id}, {"$set": updates}, upsert=False)
        except PyMongoError as exc:
            logger.exception("update anima %s failed", anima_id)
            raise StoreError(_store_message(exc, "update")) from exc
        logger.info("anima updated: %s by %s", anima_id, self.actor)
        self._audit("anima.update", anima_id, before, {**before, **updates})

    def delete(self, anima_id: str) -> None:
        try:
            before = self.col.find_one({"id": anima_id}, {"_id": 0})
            if not before:
                raise AnimaNotFound(f"Anima {anima_id} not found")
            self.col.delete_one({"id": anima_id})
        except PyMongoError as exc:
            logger.exception("delete anima %s failed", anima_id)
            raise StoreError(_store_message(exc, "delete")) from exc
        logger.info("anima deleted: %s by %s", anima_id, self.actor)
        self._audit("anima.delete", anima_id, before, None)

    def _audit(self, action: str, anima_id: str, before, after) -> None:
        try:
            write_audit(action, self.actor, anima_id, before, after)
        except PyMongoError:
            logger.warning("audit write failed for %s %s", action, anima_id)
