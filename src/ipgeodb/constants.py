"""Centralized constants for all modules."""

# Artifact magic bytes
DICT_MAGIC = b"IPDC"
CHUNK_MAGIC = b"IPCH"

# Format versions written by the compiler
DICT_VERSION = 1
CHUNK_VERSION = 2
KNOWN_CHUNK_VERSIONS = (1, 2)

# Table limits (indices and string lengths are stored as uint16)
MAX_TABLE_SIZE = 0x10000
MAX_STRING_BYTES = 0xFFFF

# Address space
OCTET_COUNT = 256
OCTET_SPAN = 0x00FFFFFF
MAX_IPV4 = 0xFFFFFFFF

# Source rows: startIP|endIP|country|province|city|isp...
MIN_SOURCE_FIELDS = 6
UNKNOWN_FIELD_VALUES = ("", "0")

# Artifact file names
DICT_STEM = "dict"
CHUNKS_DIR = "chunks"
MANIFEST_NAME = "manifest.json"
STAGING_DIR = ".ipgeodb-staging"
BACKUP_DIR = ".ipgeodb-old"
ARTIFACT_FORMATS = ("bin", "js")
JS_DICT_EXPORT = "DICT"
JS_CHUNK_EXPORT = "CH"

# Upstream dataset mirrors, tried in order
DEFAULT_SOURCE_URLS = (
    "https://raw.githubusercontent.com/lionsoul2014/ip2region/master/data/ipv4_source.txt",
    "https://cdn.jsdelivr.net/gh/lionsoul2014/ip2region@master/data/ipv4_source.txt",
)

# Timeouts (seconds)
FETCH_TIMEOUT = 60
