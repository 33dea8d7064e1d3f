from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile
from fastapi.responses import JSONResponse

from server.src.modules.anima_editor import AnimaEditor, apply_field
from server.src.modules.anima_errors import AnimaNotFound, StoreError, ValidationError
from server.src.modules.anima_store import AnimaStore
from server.src.modules.anima_view import (
    ATTRIBUTE_FILTERS,
    SORT_MODES,
    ViewParameters,
    compute_view,
    evolution_label,
    evolutionary_line_options,
    index_by_id,
)
from server.src.modules.authentification_helpers import User, require_auth
from server.src.modules.image_encoding import encode_to_data_url
from server.src.modules.logging_helpers import logger
from server.src.objects.animas import (
    DRAFT_FIELDS,
    Anima,
    draft_from_payload,
    power_score,
)

router = APIRouter(prefix="/api/animas", tags=["animas"])


def get_store(user: User = Depends(require_auth)) -> AnimaStore:
    return AnimaStore(actor=user.email)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"status": "error", "message": message}, status_code=status_code)


def _store_error(exc: StoreError) -> JSONResponse:
    if isinstance(exc, AnimaNotFound):
        return _error(exc.message, 404)
    return _error(exc.message, 502)


def serialize_anima(anima: Anima, index: dict[str, Anima]) -> dict:
    d = anima.to_dict()
    d["power_score"] = power_score(anima)
    d["evolves_into"] = evolution_label(anima, index)
    return d


async def _json_body(request: Request) -> Optional[dict]:
    try:
        body = await request.json()
    except Exception:
        return None
    return body if isinstance(body, dict) else None


@router.get("")
def list_animas(
    q: str = Query(default=""),
    attribute: str = Query(default="all"),
    sort: str = Query(default="recent"),
    store: AnimaStore = Depends(get_store),
):
    attribute = (attribute or "all").strip().lower()
    if attribute not in ATTRIBUTE_FILTERS:
        return _error(f"Unknown attribute filter: {attribute}", 400)
    sort = sort if sort in SORT_MODES else "recent"
    try:
        records = store.list()
    except StoreError as exc:
        return _store_error(exc)

    view = compute_view(records, ViewParameters(search_query=q, attribute_filter=attribute, sort_mode=sort))
    index = index_by_id(records)
    return {
        "status": "success",
        "items": [serialize_anima(a, index) for a in view.visible],
        "stats": {
            "total": view.stats.total,
            "evolutionary_lines": view.stats.evolutionary_lines,
            "avg_attack": view.stats.avg_attack,
            "avg_defense": view.stats.avg_defense,
            "avg_health": view.stats.avg_health,
        },
        "evolutionary_lines": evolutionary_line_options(records),
    }


@router.get("/{anima_id}")
def get_anima(anima_id: str, store: AnimaStore = Depends(get_store)):
    try:
        anima = store.get(anima_id)
        if anima is None:
            return _error(f"Anima {anima_id} not found", 404)
        index = index_by_id(store.list())
    except StoreError as exc:
        return _store_error(exc)
    return {"status": "success", "anima": serialize_anima(anima, index)}


@router.post("")
async def create_anima(request: Request, store: AnimaStore = Depends(get_store)):
    body = await _json_body(request)
    if body is None:
        return _error("Invalid JSON body", 400)

    editor = AnimaEditor(store)
    editor.open_create()
    editor.draft = draft_from_payload(body)
    try:
        created = editor.save()
    except ValidationError as exc:
        return _error(str(exc), 400)
    except StoreError as exc:
        return _store_error(exc)

    index = index_by_id(editor.records)
    return {"status": "success", "id": created.id, "anima": serialize_anima(created, index)}


@router.put("/{anima_id}")
async def update_anima(anima_id: str, request: Request, store: AnimaStore = Depends(get_store)):
    body = await _json_body(request)
    if body is None:
        return _error("Invalid JSON body", 400)

    editor = AnimaEditor(store)
    try:
        editor.open_edit(anima_id)
        for name in DRAFT_FIELDS:
            if name in body:
                editor.set_field(name, body[name])
        editor.save()
    except ValidationError as exc:
        return _error(str(exc), 400)
    except StoreError as exc:
        return _store_error(exc)

    index = index_by_id(editor.records)
    updated = index.get(anima_id)
    if updated is None:
        return _error(f"Anima {anima_id} not found", 404)
    return {"status": "success", "id": anima_id, "anima": serialize_anima(updated, index)}


@router.delete("/{anima_id}")
def delete_anima(anima_id: str, store: AnimaStore = Depends(get_store)):
    editor = AnimaEditor(store)
    try:
        editor.delete(anima_id)
    except StoreError as exc:
        return _store_error(exc)
    return {"status": "success", "deleted": anima_id}


@router.post("/preview")
async def preview_draft(request: Request, _user: User = Depends(require_auth)):
    """Score a form draft and optionally apply one field edit to it.

    Body: ``{"draft": {...}, "field": "attack", "value": "50",
    "auto_balance": true}``; ``field``/``value`` are optional.
    """
    body = await _json_body(request)
    if body is None:
        return _error("Invalid JSON body", 400)
    raw_draft: Any = body.get("draft") or {}
    if not isinstance(raw_draft, dict):
        return _error("draft must be an object", 400)

    draft = draft_from_payload(raw_draft)
    field = body.get("field")
    if field:
        value = body.get("value")
        try:
            draft = apply_field(draft, str(field), "" if value is None else str(value), bool(body.get("auto_balance")))
        except ValidationError as exc:
            return _error(str(exc), 400)
    return {"status": "success", "draft": draft.to_dict(), "power_score": power_score(draft)}


@router.post("/image")
async def encode_image(file: UploadFile = File(...), _user: User = Depends(require_auth)):
    data = await file.read()
    try:
        data_url = encode_to_data_url(data, file.content_type if file.content_type != "application/octet-stream" else None)
    except ValidationError as exc:
        logger.info("image rejected: %s (%s)", file.filename, exc)
        return _error(str(exc), 400)
    return {"status": "success", "image_url": data_url, "size": len(data)}
