from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping, Sequence

from server.src.objects.animas import ATTRIBUTES, Anima, power_score, round_half_up


SORT_MODES = ("recent", "strongest", "name")
ATTRIBUTE_FILTERS = ("all",) + ATTRIBUTES
NO_EVOLUTION = "—"
_FRACTION_RE = re.compile(r"\.(\d+)")


@dataclass(frozen=True)
class ViewParameters:
    search_query: str = ""
    attribute_filter: str = "all"
    sort_mode: str = "recent"


@dataclass(frozen=True)
class ViewStats:
    total: int = 0
    evolutionary_lines: int = 0
    avg_attack: int = 0
    avg_defense: int = 0
    avg_health: int = 0


@dataclass
class AnimaView:
    visible: list[Anima] = field(default_factory=list)
    stats: ViewStats = field(default_factory=ViewStats)


def normalize_query(value: str | None) -> str:
    return (value or "").strip().lower()


def _matches_attribute(anima: Anima, attribute_filter: str) -> bool:
    return attribute_filter == "all" or anima.attribute == attribute_filter


def _matches_query(anima: Anima, query: str) -> bool:
    if not query:
        return True
    return (
        query in anima.species.lower()
        or query in anima.evolutionary_line.lower()
        or query in anima.attribute.lower()
    )


def _name_key(value: str) -> tuple[str, str]:
    folded = unicodedata.normalize("NFKD", value)
    base = "".join(ch for ch in folded if not unicodedata.combining(ch)).casefold()
    # lowercase before uppercase on otherwise equal names
    return base, value.swapcase()


def _created_ts(value: str) -> float | None:
    raw = (value or "").strip()
    if not raw:
        return None
    if raw.endswith("Z"):
        raw = raw[:-1] + "+00:00"
    # 3.10 fromisoformat only takes 3 or 6 fraction digits
    raw = _FRACTION_RE.sub(lambda m: "." + (m.group(1) + "000000")[:6], raw, count=1)
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.timestamp()


def _recent_key(anima: Anima) -> tuple[int, float]:
    ts = _created_ts(anima.created_at)
    if ts is None:
        return (1, 0.0)
    return (0, -ts)


def sort_animas(items: Iterable[Anima], sort_mode: str) -> list[Anima]:
    # sorted() is stable, so equal keys keep their input order
    if sort_mode == "name":
        return sorted(items, key=lambda a: _name_key(a.species))
    if sort_mode == "strongest":
        return sorted(items, key=lambda a: -power_score(a))
    return sorted(items, key=_recent_key)


def filter_animas(records: Iterable[Anima], params: ViewParameters) -> list[Anima]:
    query = normalize_query(params.search_query)
    return [
        a for a in records
        if _matches_attribute(a, params.attribute_filter) and _matches_query(a, query)
    ]


def _mean(values: Sequence[float]) -> int:
    if not values:
        return 0
    return round_half_up(sum(values) / len(values))


def evolutionary_line_options(records: Iterable[Anima]) -> list[str]:
    return sorted({a.evolutionary_line for a in records}, key=_name_key)


def compute_stats(records: Sequence[Anima]) -> ViewStats:
    return ViewStats(
        total=len(records),
        evolutionary_lines=len({a.evolutionary_line for a in records}),
        avg_attack=_mean([a.attack for a in records]),
        avg_defense=_mean([a.defense for a in records]),
        avg_health=_mean([a.max_health for a in records]),
    )


def compute_view(records: Sequence[Anima], params: ViewParameters | None = None) -> AnimaView:
    """Filter and order ``records`` for display.

    Stats always describe the full collection, not the filtered subset.
    """
    params = params or ViewParameters()
    records = list(records)
    visible = sort_animas(filter_animas(records, params), params.sort_mode)
    return AnimaView(visible=visible, stats=compute_stats(records))


def index_by_id(records: Iterable[Anima]) -> dict[str, Anima]:
    return {a.id: a for a in records}


def evolution_label(anima: Anima, records: Mapping[str, Anima] | Iterable[Anima]) -> str:
    target_id = anima.next_evolution_id
    if not target_id:
        return NO_EVOLUTION
    index = records if isinstance(records, Mapping) else index_by_id(records)
    target = index.get(target_id)
    return target.species if target else NO_EVOLUTION
