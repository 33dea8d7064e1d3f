import math
from dataclasses import dataclass, asdict, fields
from typing import Any, Optional, Union

ATTRIBUTES = ("fire", "water", "plant")
NUMERIC_FIELDS = ("attack", "defense", "max_health", "attack_speed_seconds", "critical_chance")
INT_FIELDS = ("attack", "defense", "max_health")


@dataclass
class Anima:
    id: str
    species: str
    evolutionary_line: str
    attack: int
    defense: int
    max_health: int
    attack_speed_seconds: float
    critical_chance: float
    attribute: str
    created_at: str
    next_evolution_id: Optional[str] = None
    image_url: Optional[str] = None

    def to_dict(self):
        return asdict(self)


@dataclass
class AnimaDraft:
    """Form state for a creature being created or edited.

    Every value is kept as the raw text the user typed; nothing is coerced
    until ``draft_to_fields`` runs at the save boundary.
    """
    species: str = ""
    evolutionary_line: str = ""
    next_evolution_id: str = ""
    attack: str = ""
    defense: str = ""
    max_health: str = ""
    attack_speed_seconds: str = ""
    critical_chance: str = ""
    image_url: str = ""
    attribute: str = "fire"

    def to_dict(self):
        return asdict(self)


DRAFT_FIELDS = tuple(f.name for f in fields(AnimaDraft))


def parse_number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    raw = str(value).strip()
    if not raw:
        return 0.0
    try:
        num = float(raw)
    except ValueError:
        return 0.0
    return num if math.isfinite(num) else 0.0


def round_half_up(value: float) -> int:
    # 2.5 -> 3, -2.5 -> -2
    return int(math.floor(value + 0.5))


def _stat(item, name: str) -> float:
    raw = item.get(name) if isinstance(item, dict) else getattr(item, name, None)
    return parse_number(raw)


def power_score(item: Union[Anima, AnimaDraft, dict]) -> int:
    """Same formula for stored records, form drafts and raw dicts."""
    attack = _stat(item, "attack")
    defense = _stat(item, "defense")
    max_health = _stat(item, "max_health")
    critical = _stat(item, "critical_chance")
    speed = _stat(item, "attack_speed_seconds")
    return round_half_up(attack * 1.2 + defense * 1.0 + max_health * 0.4 + critical * 1.5 - speed * 2.0)


def num_text(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def draft_from_anima(anima: Anima) -> AnimaDraft:
    return AnimaDraft(
        species=anima.species,
        evolutionary_line=anima.evolutionary_line,
        next_evolution_id=anima.next_evolution_id or "",
        attack=num_text(anima.attack),
        defense=num_text(anima.defense),
        max_health=num_text(anima.max_health),
        attack_speed_seconds=num_text(anima.attack_speed_seconds),
        critical_chance=num_text(anima.critical_chance),
        image_url=anima.image_url or "",
        attribute=anima.attribute,
    )


def draft_from_payload(body: dict) -> AnimaDraft:
    """Build a draft from a JSON body; unknown keys are ignored."""
    values = {}
    for name in DRAFT_FIELDS:
        raw = body.get(name)
        if raw is None:
            continue
        values[name] = num_text(raw) if isinstance(raw, (int, float)) and not isinstance(raw, bool) else str(raw)
    return AnimaDraft(**values)


def draft_to_fields(draft: AnimaDraft) -> dict:
    out: dict[str, Any] = {
        "species": draft.species.strip(),
        "evolutionary_line": draft.evolutionary_line.strip(),
        "next_evolution_id": draft.next_evolution_id.strip() or None,
        "image_url": draft.image_url.strip() or None,
        "attribute": draft.attribute,
    }
    for name in NUMERIC_FIELDS:
        num = parse_number(getattr(draft, name))
        out[name] = int(num) if name in INT_FIELDS else num
    return out


def anima_from_doc(doc: dict) -> Anima:
    return Anima(
        id=str(doc["id"]),
        species=str(doc.get("species") or ""),
        evolutionary_line=str(doc.get("evolutionary_line") or ""),
        attack=int(parse_number(doc.get("attack"))),
        defense=int(parse_number(doc.get("defense"))),
        max_health=int(parse_number(doc.get("max_health"))),
        attack_speed_seconds=parse_number(doc.get("attack_speed_seconds")),
        critical_chance=parse_number(doc.get("critical_chance")),
        attribute=str(doc.get("attribute") or "fire"),
        created_at=str(doc.get("created_at") or ""),
        next_evolution_id=doc.get("next_evolution_id") or None,
        image_url=doc.get("image_url") or None,
    )
