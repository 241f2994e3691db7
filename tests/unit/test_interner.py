import pytest

from ipgeodb.cli_errors import DataError
from ipgeodb.interner import Interner


def test_intern_string_first_seen_order():
    interner = Interner()
    assert interner.intern_string("CN") == 0
    assert interner.intern_string("Beijing") == 1
    assert interner.intern_string("CN") == 0
    assert interner.intern_string("") == 2
    assert interner.strings == ["CN", "Beijing", ""]


def test_intern_triple_deduplicates():
    interner = Interner()
    first = interner.intern_triple("China", "Guangdong", "Guangzhou")
    second = interner.intern_triple("China", "Fujian", "Fuzhou")
    again = interner.intern_triple("China", "Guangdong", "Guangzhou")
    assert (first, second, again) == (0, 1, 0)
    assert interner.triples == [(0, 1, 2), (0, 3, 4)]


def test_intern_triple_shares_strings_across_fields():
    interner = Interner()
    interner.intern_triple("Singapore", "Singapore", "Singapore")
    assert interner.strings == ["Singapore"]
    assert interner.triples == [(0, 0, 0)]


def test_interning_is_reproducible():
    rows = [("A", "B", "C"), ("A", "", ""), ("D", "B", "C"), ("A", "B", "C")]

    def build():
        interner = Interner()
        indices = [interner.intern_triple(*row) for row in rows]
        return indices, interner.to_dictionary()

    assert build() == build()


def test_to_dictionary_copies_tables():
    interner = Interner()
    interner.intern_triple("A", "B", "C")
    dictionary = interner.to_dictionary()
    interner.intern_triple("X", "Y", "Z")
    assert len(dictionary.triples) == 1
    assert dictionary.strings == ["A", "B", "C"]


def test_string_table_overflow(monkeypatch):
    monkeypatch.setattr("ipgeodb.interner.MAX_TABLE_SIZE", 2)
    interner = Interner()
    interner.intern_string("a")
    interner.intern_string("b")
    with pytest.raises(DataError, match="String table overflow"):
        interner.intern_string("c")


def test_triple_table_overflow(monkeypatch):
    monkeypatch.setattr("ipgeodb.interner.MAX_TABLE_SIZE", 2)
    interner = Interner()
    interner.intern_triple("", "", "")
    interner.intern_triple("", "", "x")
    with pytest.raises(DataError, match="Triple table overflow"):
        interner.intern_triple("x", "", "")
