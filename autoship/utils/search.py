import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable

from rapidfuzz.distance import Levenshtein

_WORD = re.compile(r"\w")
_PHRASE = re.compile(r'"([^"]+)"')


@dataclass(frozen=True)
class SearchField:
    key: str
    weight: float = 1.0


@dataclass
class SearchMatch:
    field: str
    value: str
    score: float


@dataclass
class SearchResult:
    item: dict
    score: float
    matches: list[SearchMatch] = field(default_factory=list)


def parse_query(query: str) -> list[str]:
    """Split on whitespace, keeping "quoted phrases" together."""
    phrases = _PHRASE.findall(query)
    rest = _PHRASE.sub(" ", query)
    return [p for p in phrases if p.strip()] + [t for t in rest.split() if t]


def _is_word_boundary(value: str, index: int, length: int) -> bool:
    before = index == 0 or not _WORD.match(value[index - 1])
    end = index + length
    after = end >= len(value) or not _WORD.match(value[end])
    return before and after


def _substring_score(value: str, term: str, index: int) -> float:
    position = 1.0 if index == 0 else max(0.3, 1.0 - index / len(value))
    length = len(term) / len(value)
    boundary = 1.2 if _is_word_boundary(value, index, len(term)) else 1.0
    return min(1.0, position * length * boundary)


def _fuzzy_score(value: str, term: str) -> float:
    # 1 - edit distance / longer length
    return Levenshtein.normalized_similarity(value, term)


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true yes active enabled" if value else "false no inactive disabled"
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value)
    return str(value)


class SearchService:
    """Weighted, typo-tolerant search over a list of dict rows."""

    def __init__(self, fields: Iterable[SearchField], *, fuzzy_threshold: float = 0.6):
        self.fields = list(fields)
        self.fuzzy_threshold = fuzzy_threshold

    def _term_match(self, value: str, term: str, f: SearchField) -> SearchMatch | None:
        haystack = value.lower()
        needle = term.lower()
        idx = haystack.find(needle)
        if idx != -1:
            score = _substring_score(haystack, needle, idx) * f.weight
        else:
            fuzzy = _fuzzy_score(haystack, needle)
            # Fuzzy hits count for less than literal ones.
            score = fuzzy * f.weight * 0.7 if fuzzy >= self.fuzzy_threshold else 0.0
        if score <= 0:
            return None
        return SearchMatch(field=f.key, value=value, score=score)

    def _matches(self, item: dict, terms: list[str]) -> list[SearchMatch]:
        found: list[SearchMatch] = []
        for f in self.fields:
            raw = item.get(f.key)
            if raw is None:
                continue
            value = _as_text(raw)
            for term in terms:
                m = self._term_match(value, term, f)
                if m:
                    found.append(m)
        return found

    @staticmethod
    def _score(matches: list[SearchMatch]) -> float:
        total = sum(m.score for m in matches)
        diversity = 1.2 if len({m.field for m in matches}) > 1 else 1.0
        return total / len(matches) * diversity

    def search(self, items: list[dict], query: str) -> list[SearchResult]:
        terms = parse_query(query or "")
        if not terms:
            return [SearchResult(item=i, score=0.0) for i in items]
        results = []
        for item in items:
            matches = self._matches(item, terms)
            if matches:
                results.append(SearchResult(item=item, score=self._score(matches), matches=matches))
        results.sort(key=lambda r: r.score, reverse=True)
        return results


ORDER_SEARCH_FIELDS = [
    SearchField("order_number", 2.0),
    SearchField("vin_number", 1.8),
    SearchField("pickup_company_name", 1.5),
    SearchField("delivery_company_name", 1.5),
    SearchField("status", 1.4),
    SearchField("vehicle_make", 1.3),
    SearchField("vehicle_model", 1.3),
    SearchField("pickup_contact_name", 1.2),
    SearchField("delivery_contact_name", 1.2),
    SearchField("pickup_contact_phone", 1.0),
    SearchField("delivery_contact_phone", 1.0),
    SearchField("vehicle_year", 1.0),
    SearchField("notes", 0.8),
]


def order_search_service() -> SearchService:
    return SearchService(ORDER_SEARCH_FIELDS, fuzzy_threshold=0.7)


def _parse_day(value: str) -> date | None:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
    except (AttributeError, ValueError):
        return None


def filter_date_range(items: list[dict], key: str, start: date | None = None, end: date | None = None) -> list[dict]:
    """Keep rows whose `key` timestamp falls on or between the given days."""
    out = []
    for item in items:
        day = _parse_day(item.get(key) or "")
        if day is None:
            continue
        if start and day < start:
            continue
        if end and day > end:
            continue
        out.append(item)
    return out
