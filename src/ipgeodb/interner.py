"""First-seen interning of location strings and (country, province, city) triples."""

from __future__ import annotations

from typing import Dict, List

from .cli_errors import DataError
from .constants import MAX_TABLE_SIZE
from .models import Dictionary, Triple


class Interner:
    """Assign stable small integers to strings and triples in first-seen order.

    The same input order always yields the same indices, which keeps the
    build artifacts reproducible.
    """

    def __init__(self) -> None:
        self.strings: List[str] = []
        self.triples: List[Triple] = []
        self._string_index: Dict[str, int] = {}
        self._triple_index: Dict[Triple, int] = {}

    def intern_string(self, value: str) -> int:
        index = self._string_index.get(value)
        if index is None:
            index = len(self.strings)
            if index >= MAX_TABLE_SIZE:
                raise DataError(f"String table overflow: more than {MAX_TABLE_SIZE} strings")
            self.strings.append(value)
            self._string_index[value] = index
        return index

    def intern_triple(self, country: str, province: str, city: str) -> int:
        key: Triple = (
            self.intern_string(country),
            self.intern_string(province),
            self.intern_string(city),
        )
        index = self._triple_index.get(key)
        if index is None:
            index = len(self.triples)
            if index >= MAX_TABLE_SIZE:
                raise DataError(f"Triple table overflow: more than {MAX_TABLE_SIZE} triples")
            self.triples.append(key)
            self._triple_index[key] = index
        return index

    def to_dictionary(self) -> Dictionary:
        return Dictionary(strings=list(self.strings), triples=list(self.triples))
