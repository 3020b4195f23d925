from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from lexium.loader import Dataset
from lexium.text import normalize_text

MATCH_SUGGESTIONS = 5
MISS_SUGGESTIONS = 10


@dataclass(frozen=True)
class EntityMatch:
    match: dict[str, Any] | None = None
    suggestions: list[str] = field(default_factory=list)

    @property
    def found(self) -> bool:
        return self.match is not None


def _ranked_candidates(names: list[str], query_tokens: list[str]) -> list[tuple[int, int, int, str]]:
    """(score, normalized length, row position, name) for every candidate with score > 0, best first."""
    wanted = list(dict.fromkeys(query_tokens))
    ranked: list[tuple[int, int, int, str]] = []
    for position, name in enumerate(names):
        normalized = normalize_text(name)
        if not normalized:
            continue
        candidate_tokens = set(normalized.split(" "))
        score = sum(1 for token in wanted if token in candidate_tokens)
        if score > 0:
            ranked.append((score, len(normalized), position, name))
    ranked.sort(key=lambda item: (-item[0], item[1], item[2]))
    return ranked


def resolve_entity(dataset: Dataset, raw_query: str) -> EntityMatch:
    """
    Find the record whose name best matches a free-text query.

    Exact (normalized) matches win outright. Otherwise candidates are scored
    by how many query tokens appear in their name; the best one is accepted
    only with at least min(query tokens, 2) hits.
    """
    name_col = dataset.name_column
    query = normalize_text(raw_query)
    if dataset.is_empty or name_col is None or not query:
        return EntityMatch()

    records = dataset.records()
    names = ["" if record.get(name_col) is None else str(record.get(name_col)) for record in records]

    for position, name in enumerate(names):
        if normalize_text(name) == query:
            return EntityMatch(match=records[position], suggestions=[])

    query_tokens = query.split(" ")
    ranked = _ranked_candidates(names, query_tokens)
    if not ranked:
        return EntityMatch()

    # Unique tokens only, so repeating a word cannot inflate the threshold.
    needed = min(len(set(query_tokens)), 2)
    best_score, _, best_position, _ = ranked[0]
    if best_score >= needed:
        runners_up = [name for _, _, _, name in ranked[1 : MATCH_SUGGESTIONS + 1]]
        return EntityMatch(match=records[best_position], suggestions=runners_up)

    return EntityMatch(suggestions=[name for _, _, _, name in ranked[:MISS_SUGGESTIONS]])
