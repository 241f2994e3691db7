from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

# (countryIdx, provinceIdx, cityIdx) into Dictionary.strings
Triple = Tuple[int, int, int]

EMPTY_TRIPLE: Triple = (0, 0, 0)


@dataclass(frozen=True, slots=True)
class Range:
    """One contiguous IPv4 block (``end`` inclusive) resolving to one triple."""

    start: int
    end: int
    triple: int

    def contains(self, value: int) -> bool:
        return self.start <= value <= self.end

    def touches(self, other: "Range") -> bool:
        """True when *other* starts right after this range with the same triple."""

        return self.triple == other.triple and self.end + 1 == other.start

    @property
    def size(self) -> int:
        return self.end - self.start + 1


@dataclass(frozen=True, slots=True)
class LookupResult:
    """Resolved location for one address. ``None`` means unknown."""

    country: Optional[str] = None
    province: Optional[str] = None
    city: Optional[str] = None

    @property
    def found(self) -> bool:
        return any(value is not None for value in (self.country, self.province, self.city))

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"country": self.country, "province": self.province, "city": self.city}


NOT_FOUND = LookupResult()


@dataclass(slots=True)
class Dictionary:
    """Interned location strings plus the deduplicated triple table."""

    strings: List[str] = field(default_factory=list)
    triples: List[Triple] = field(default_factory=list)

    @classmethod
    def empty(cls) -> "Dictionary":
        return cls()

    def string(self, index: int) -> Optional[str]:
        """Return the string at *index*; empty or out-of-range values are unknown."""

        if 0 <= index < len(self.strings):
            return self.strings[index] or None
        return None

    def triple(self, index: int) -> Triple:
        if 0 <= index < len(self.triples):
            return self.triples[index]
        return EMPTY_TRIPLE

    def resolve(self, triple_index: int) -> LookupResult:
        country, province, city = self.triple(triple_index)
        return LookupResult(
            country=self.string(country),
            province=self.string(province),
            city=self.string(city),
        )


@dataclass(slots=True)
class SourceRow:
    """A parsed ``startIP|endIP|country|province|city|...`` line."""

    start: int
    end: int
    country: str
    province: str
    city: str


@dataclass(slots=True)
class CompiledDataset:
    """Output of the range compiler: the dictionary and the sorted global ranges."""

    dictionary: Dictionary
    ranges: List[Range]
    stats: Dict[str, Any] = field(default_factory=dict)
