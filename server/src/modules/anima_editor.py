from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional, Union

from server.src.modules.anima_errors import AnimaNotFound, EditorStateError, StoreError, ValidationError
from server.src.modules.anima_store import AnimaStore
from server.src.modules.image_encoding import encode_to_data_url
from server.src.modules.logging_helpers import logger
from server.src.objects.animas import (
    ATTRIBUTES,
    DRAFT_FIELDS,
    Anima,
    AnimaDraft,
    draft_from_anima,
    draft_to_fields,
    num_text,
    parse_number,
    power_score,
)


@dataclass(frozen=True)
class Browsing:
    pass


@dataclass(frozen=True)
class Editing:
    existing_id: Optional[str] = None


@dataclass(frozen=True)
class Submitting:
    existing_id: Optional[str] = None


EditorState = Union[Browsing, Editing, Submitting]

MIN_BALANCED_HEALTH = 40


def balanced_health(attack: float, defense: float) -> float:
    return max(MIN_BALANCED_HEALTH, attack * 2 + defense * 2)


def apply_field(draft: AnimaDraft, name: str, value: str, auto_balance: bool = False) -> AnimaDraft:
    """Return ``draft`` with one field changed.

    With ``auto_balance`` on, an attack or defense edit also rewrites
    max_health from the new value of that field and the old value of the
    other one.
    """
    if name not in DRAFT_FIELDS:
        raise ValidationError(f"Unknown field: {name}")
    if name == "attribute" and value not in ATTRIBUTES:
        raise ValidationError(f"Unknown attribute: {value}")
    updated = replace(draft, **{name: value})
    if auto_balance and name in ("attack", "defense"):
        attack = parse_number(value if name == "attack" else draft.attack)
        defense = parse_number(value if name == "defense" else draft.defense)
        updated = replace(updated, max_health=num_text(balanced_health(attack, defense)))
    return updated


def validate_draft(draft: AnimaDraft) -> None:
    if not draft.species.strip() or not draft.evolutionary_line.strip():
        raise ValidationError("Species and evolutionary line are required.")
    if draft.attribute not in ATTRIBUTES:
        raise ValidationError(f"Unknown attribute: {draft.attribute}")


class AnimaEditor:
    """Create/edit/delete workflow over an ``AnimaStore``.

    Browsing -> Editing (open_create / open_edit) -> Submitting (save) ->
    Browsing on success, or back to Editing with ``error`` set when the
    store refuses the change. Local records are only replaced after the
    store confirms.
    """

    def __init__(self, store: AnimaStore, records: Optional[list[Anima]] = None):
        self.store = store
        self.state: EditorState = Browsing()
        self.draft = AnimaDraft()
        self.auto_balance = False
        self.error: Optional[str] = None
        self.records: list[Anima] = list(records) if records is not None else []

    def refresh(self) -> list[Anima]:
        self.records = self.store.list()
        return self.records

    def _require(self, *states) -> None:
        if not isinstance(self.state, states):
            names = ", ".join(s.__name__ for s in states)
            raise EditorStateError(f"Command not allowed while {type(self.state).__name__} (expected {names})")

    def open_create(self) -> None:
        self._require(Browsing, Editing)
        self.state = Editing()
        self.draft = AnimaDraft()
        self.auto_balance = False
        self.error = None

    def open_edit(self, anima_id: str) -> None:
        self._require(Browsing, Editing)
        anima = next((a for a in self.records if a.id == anima_id), None) or self.store.get(anima_id)
        if anima is None:
            raise AnimaNotFound(f"Anima {anima_id} not found")
        if anima not in self.records:
            self.records.append(anima)
        self.state = Editing(existing_id=anima.id)
        self.draft = draft_from_anima(anima)
        self.auto_balance = False
        self.error = None

    def set_field(self, name: str, value) -> None:
        self._require(Editing)
        self.draft = apply_field(self.draft, name, "" if value is None else str(value), self.auto_balance)

    def set_auto_balance(self, on: bool) -> None:
        self.auto_balance = bool(on)

    def attach_image(self, data: bytes, content_type: Optional[str] = None) -> None:
        self._require(Editing)
        self.draft = replace(self.draft, image_url=encode_to_data_url(data, content_type))

    def preview_score(self) -> int:
        return power_score(self.draft)

    def cancel(self) -> None:
        self._require(Browsing, Editing)
        self.state = Browsing()
        self.draft = AnimaDraft()
        self.error = None

    def save(self) -> Optional[Anima]:
        self._require(Editing)
        try:
            validate_draft(self.draft)
        except ValidationError as exc:
            self.error = str(exc)
            raise

        existing_id = self.state.existing_id
        fields = draft_to_fields(self.draft)
        self.state = Submitting(existing_id=existing_id)
        try:
            if existing_id:
                self.store.update(existing_id, fields)
                created = None
            else:
                created = self.store.create(fields)
        except StoreError as exc:
            logger.info("save rejected by store: %s", exc.message)
            self.state = Editing(existing_id=existing_id)
            self.error = exc.message
            raise

        self.state = Browsing()
        self.draft = AnimaDraft()
        self.error = None
        # the write is already committed; a failed reload only patches local records
        try:
            self.refresh()
        except StoreError as exc:
            logger.warning("reload after save failed: %s", exc.message)
            if created is not None:
                self.records = [created] + [a for a in self.records if a.id != created.id]
            else:
                self.records = [replace(a, **fields) if a.id == existing_id else a for a in self.records]
        return created

    def delete(self, anima_id: str) -> None:
        self._require(Browsing)
        try:
            self.store.delete(anima_id)
        except StoreError as exc:
            self.error = exc.message
            raise
        self.error = None
        try:
            self.refresh()
        except StoreError as exc:
            logger.warning("reload after delete failed: %s", exc.message)
            self.records = [a for a in self.records if a.id != anima_id]
