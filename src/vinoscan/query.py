"""Search, filter and sort the catalog into the view the UI renders."""

import re
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, List

from vinoscan.constants import SortKey, SortOrder
from vinoscan.schema import WineEntry

_NON_PRICE = re.compile(r'[^0-9.]')
_NON_DIGIT = re.compile(r'[^0-9]')
_LEADING_DECIMAL = re.compile(r'\d+(?:\.\d*)?|\.\d+')


@dataclass(frozen=True)
class QueryState:
    """Transient view state: search term, ordering and trash toggle."""

    search_term: str = ""
    sort_key: SortKey = SortKey.CREATED_AT
    sort_order: SortOrder = SortOrder.DESC
    show_trash: bool = False

    def toggled(self) -> "QueryState":
        """Same state with the sort order flipped."""
        order = SortOrder.ASC if self.sort_order is SortOrder.DESC else SortOrder.DESC
        return replace(self, sort_order=order)


def parse_price(value: str) -> float:
    """Numeric price from free text: '$1,200.50' -> 1200.5, 'bad' -> 0."""
    match = _LEADING_DECIMAL.match(_NON_PRICE.sub('', value or ''))
    return float(match.group()) if match else 0.0


def parse_year(value: str) -> int:
    """Numeric year from free text: 'c. 2018' -> 2018, 'N/V' -> 0."""
    digits = _NON_DIGIT.sub('', value or '')
    return int(digits) if digits else 0


_SORT_KEYS: Dict[SortKey, Callable[[WineEntry], Any]] = {
    SortKey.NAME: lambda e: e.name.lower(),
    SortKey.MAKER: lambda e: e.maker.lower(),
    SortKey.YEAR: lambda e: parse_year(e.year),
    SortKey.PRICE: lambda e: parse_price(e.price),
    SortKey.CREATED_AT: lambda e: e.created_at,
}


def matches(entry: WineEntry, term: str) -> bool:
    """Case-insensitive substring match on name, maker, notes and bin number."""
    term = term.lower()
    return any(
        term in field.lower()
        for field in (entry.name, entry.maker, entry.notes, entry.bin_number)
    )


def query_entries(entries: Iterable[WineEntry], state: QueryState = QueryState()) -> List[WineEntry]:
    """
    Derive the displayed list from the full collection.

    The source is never mutated. Sorting is stable in both directions, so
    entries with equal keys keep their collection order.
    """
    result = [e for e in entries if e.is_trashed == state.show_trash]

    if state.search_term.strip():
        result = [e for e in result if matches(e, state.search_term)]

    return sorted(
        result,
        key=_SORT_KEYS[SortKey(state.sort_key)],
        reverse=SortOrder(state.sort_order) is SortOrder.DESC,
    )
