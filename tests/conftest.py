import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from ipgeodb.artifacts import write_artifacts
from ipgeodb.chunk_codec import encode_chunk
from ipgeodb.dict_codec import encode_dictionary
from ipgeodb.models import Dictionary, Range


SAMPLE_DATASET = """\
# startIP|endIP|country|province|city|isp
0.0.0.0|0.255.255.255|0|0|0|0
1.0.0.0|1.0.0.255|Australia|Queensland|Brisbane|0
1.0.1.0|1.0.3.255|China|Fujian|Fuzhou|ChinaTelecom
1.0.4.0|1.0.7.255|Australia|Victoria|Melbourne|0
1.0.8.0|1.0.15.255|China|Guangdong|Guangzhou|ChinaTelecom
1.0.16.0|1.0.31.255|Japan|0|0|0
short|row
1.0.32.0|1.0.63.255|China|Guangdong|Guangzhou|ChinaTelecom
1.0.64.0|1.255.255.255|Japan|0|0|0
2.0.0.0|2.255.255.255|France|0|0|0
"""


@pytest.fixture
def sample_lines():
    return SAMPLE_DATASET.splitlines()


@pytest.fixture
def dataset_file(tmp_path):
    path = tmp_path / "ipv4_source.txt"
    path.write_text(SAMPLE_DATASET, encoding="utf-8")
    return path


@pytest.fixture
def example_db(tmp_path):
    """Database with one record covering 1.0.0.0/8 -> CN/Beijing/Haidian."""

    dictionary = Dictionary(strings=["CN", "Beijing", "Haidian"], triples=[(0, 1, 2)])
    chunk = encode_chunk([Range(0x01000000, 0x01FFFFFF, 0)])
    root = tmp_path / "db"
    write_artifacts(root, encode_dictionary(dictionary), {1: chunk})
    return root
