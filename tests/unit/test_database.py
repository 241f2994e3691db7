import asyncio
import threading
from unittest.mock import patch

import pytest

from ipgeodb.artifacts import ArtifactStore, chunk_path, dict_path, write_artifacts
from ipgeodb.chunk_codec import encode_chunk
from ipgeodb.database import DatabaseClosedError, GeoDatabase, find_range
from ipgeodb.dict_codec import encode_dictionary
from ipgeodb.models import Dictionary, LookupResult, Range

BEIJING = LookupResult(country="CN", province="Beijing", city="Haidian")
UNKNOWN = LookupResult(country=None, province=None, city=None)


def test_lookup_inside_record(example_db):
    with GeoDatabase.open(example_db) as db:
        assert db.lookup("1.2.3.4") == BEIJING


def test_lookup_record_bounds(example_db):
    with GeoDatabase.open(example_db) as db:
        assert db.lookup("1.0.0.0") == BEIJING
        assert db.lookup("1.255.255.255") == BEIJING
        assert db.lookup("2.0.0.0") == UNKNOWN
        assert db.lookup("0.255.255.255") == UNKNOWN


@pytest.mark.parametrize(
    "ip", ["999.1.1.1", "", "1.2.3", "not-an-ip", "1.2.3.4.5", "::1", "1" * 5000 + ".1.1.1"]
)
def test_lookup_invalid_input_is_unknown(example_db, ip):
    with GeoDatabase.open(example_db) as db:
        assert db.lookup(ip) == UNKNOWN


def test_invalid_input_loads_nothing(example_db):
    with GeoDatabase.open(example_db) as db:
        db.lookup("999.1.1.1")
        assert db.cache_info()["dictionary_loaded"] is False
        assert db.cache_info()["chunks_loaded"] == []


def test_empty_string_surfaces_as_none(tmp_path):
    dictionary = Dictionary(strings=["CN", "", "Shenzhen"], triples=[(0, 1, 2), (1, 1, 1)])
    chunk = encode_chunk([Range(0x0A000000, 0x0A0000FF, 0), Range(0x0A000100, 0x0A0001FF, 1)])
    write_artifacts(tmp_path / "db", encode_dictionary(dictionary), {10: chunk})

    with GeoDatabase.open(tmp_path / "db") as db:
        result = db.lookup("10.0.0.1")
        assert result.country == "CN"
        assert result.province is None
        assert result.city == "Shenzhen"
        assert db.lookup("10.0.1.1") == UNKNOWN
        assert not db.lookup("10.0.1.1").found


def test_out_of_range_triple_index_is_unknown(tmp_path):
    dictionary = Dictionary(strings=["", "CN"], triples=[(1, 0, 0)])
    chunk = encode_chunk([Range(0x0A000000, 0x0AFFFFFF, 42)])
    write_artifacts(tmp_path / "db", encode_dictionary(dictionary), {10: chunk})
    with GeoDatabase.open(tmp_path / "db") as db:
        assert db.lookup("10.1.2.3") == UNKNOWN


def test_out_of_range_string_index_is_unknown(tmp_path):
    root = tmp_path / "db"
    dictionary = Dictionary(strings=["CN"], triples=[(0, 0, 0)])
    chunk = encode_chunk([Range(0x0A000000, 0x0AFFFFFF, 0)])
    write_artifacts(root, encode_dictionary(dictionary), {10: chunk})
    # patch the triple in place to point past the string table
    payload = bytearray(dict_path(root, "bin").read_bytes())
    payload[-6:] = b"\x00\x00\x07\x00\x07\x00"
    dict_path(root, "bin").write_bytes(bytes(payload))
    with GeoDatabase.open(root) as db:
        assert db.lookup("10.0.0.1") == LookupResult(country="CN")


def test_corrupt_dictionary_degrades(example_db):
    dict_path(example_db, "bin").write_bytes(b"garbage-not-a-dictionary")
    with GeoDatabase.open(example_db) as db:
        assert db.lookup("1.2.3.4") == UNKNOWN


def test_corrupt_chunk_degrades(example_db):
    chunk_path(example_db, 1, "bin").write_bytes(b"IPCH\x02\x05\x00\x00\x00\xff")
    with GeoDatabase.open(example_db) as db:
        assert db.lookup("1.2.3.4") == UNKNOWN
        assert db.chunk(1) == []


def test_missing_database_resolves_unknown(tmp_path):
    with GeoDatabase.open(tmp_path / "nowhere") as db:
        assert db.lookup("1.2.3.4") == UNKNOWN


def test_js_database(tmp_path):
    dictionary = Dictionary(strings=["CN", "Beijing", "Haidian"], triples=[(0, 1, 2)])
    chunk = encode_chunk([Range(0x01000000, 0x01FFFFFF, 0)])
    write_artifacts(tmp_path / "db", encode_dictionary(dictionary), {1: chunk}, fmt="js")
    with GeoDatabase.open(tmp_path / "db") as db:
        assert db.store.fmt == "js"
        assert db.lookup("1.2.3.4") == BEIJING


def test_strict_chunk_version(tmp_path):
    dictionary = Dictionary(strings=["CN"], triples=[(0, 0, 0)])
    chunk = bytearray(encode_chunk([Range(0x01000000, 0x01FFFFFF, 0)]))
    chunk[4] = 9
    write_artifacts(tmp_path / "db", encode_dictionary(dictionary), {1: bytes(chunk)})
    with GeoDatabase.open(tmp_path / "db") as db:
        assert db.lookup("1.2.3.4").country == "CN"
    with GeoDatabase.open(tmp_path / "db", strict_chunk_version=True) as db:
        assert db.lookup("1.2.3.4") == UNKNOWN


def test_artifacts_are_decoded_once(example_db):
    with GeoDatabase.open(example_db) as db:
        for ip in ("1.2.3.4", "1.9.9.9", "2.0.0.1", "2.1.1.1"):
            db.lookup(ip)
        info = db.cache_info()
        assert info["dictionary_decodes"] == 1
        assert info["chunk_decodes"] == 2
        assert info["chunks_loaded"] == [1, 2]
        assert info["records_cached"] == 1


def test_concurrent_first_loads_decode_once(example_db):
    db = GeoDatabase.open(example_db)
    store = db.store
    original = store.read_chunk
    calls = []
    gate = threading.Event()

    def slow_read(octet):
        calls.append(octet)
        gate.wait(1)
        return original(octet)

    results = []
    with patch.object(store, "read_chunk", side_effect=slow_read):
        threads = [
            threading.Thread(target=lambda: results.append(db.lookup("1.2.3.4")))
            for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        gate.set()
        for thread in threads:
            thread.join()

    assert results == [BEIJING] * 8
    assert calls == [1]
    assert db.cache_info()["chunk_decodes"] == 1
    db.close()


def test_preload(example_db):
    with GeoDatabase.open(example_db) as db:
        assert db.preload() == 1
        info = db.cache_info()
        assert len(info["chunks_loaded"]) == 256
        assert info["dictionary_loaded"]


def test_closed_database_raises(example_db):
    db = GeoDatabase.open(example_db)
    db.lookup("1.2.3.4")
    db.close()
    assert db.closed
    with pytest.raises(DatabaseClosedError):
        db.lookup("1.2.3.4")
    with pytest.raises(DatabaseClosedError):
        db.chunk(1)


def test_chunk_rejects_bad_octet(example_db):
    with GeoDatabase.open(example_db) as db:
        with pytest.raises(ValueError):
            db.chunk(-1)


@pytest.mark.asyncio
async def test_lookup_async(example_db):
    with GeoDatabase.open(example_db) as db:
        results = await asyncio.gather(db.lookup_async("1.2.3.4"), db.lookup_async("bad"))
    assert results == [BEIJING, UNKNOWN]


def test_find_range():
    records = [Range(0, 9, 0), Range(20, 29, 1), Range(30, 30, 2), Range(100, 200, 3)]
    assert find_range(records, 0) == records[0]
    assert find_range(records, 9) == records[0]
    assert find_range(records, 10) is None
    assert find_range(records, 25) == records[1]
    assert find_range(records, 30) == records[2]
    assert find_range(records, 150) == records[3]
    assert find_range(records, 201) is None
    assert find_range([], 5) is None


def test_lookup_against_compiled_sample(sample_lines, tmp_path):
    from ipgeodb.compiler import compile_ranges
    from ipgeodb.sharding import shard_ranges

    dataset = compile_ranges(sample_lines)
    chunks = {
        octet: encode_chunk(records)
        for octet, records in enumerate(shard_ranges(dataset.ranges))
        if records
    }
    write_artifacts(tmp_path / "db", encode_dictionary(dataset.dictionary), chunks)
    with GeoDatabase.open(tmp_path / "db") as db:
        assert db.lookup("1.0.2.5") == LookupResult("China", "Fujian", "Fuzhou")
        assert db.lookup("1.0.20.1") == LookupResult("Japan", None, None)
        assert db.lookup("1.200.0.1") == LookupResult("Japan", None, None)
        assert db.lookup("0.1.2.3") == UNKNOWN
        assert db.lookup("2.3.4.5") == LookupResult("France", None, None)
        assert db.lookup("3.0.0.0") == UNKNOWN
    assert isinstance(ArtifactStore(tmp_path / "db").read_chunk(1), bytes)


def test_concurrent_loads_of_different_octets_are_all_counted(example_db):
    with GeoDatabase.open(example_db) as db:
        threads = [threading.Thread(target=db.chunk, args=(octet,)) for octet in range(256)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        info = db.cache_info()
        assert info["chunk_decodes"] == 256
        assert len(info["chunks_loaded"]) == 256
