"""
hashdupes: duplicate file finder built on partial-content hashing.

Core features:
- Size pre-filter: files with a unique length are never hashed
- Partial hashing: large files are compared on a bounded byte range (configurable offset/length/buffer)
- Optional full-hash verification of partial matches (test_partial_hash)
- hashlib (MD5, SHA-1/256/384/512) and xxHash (xxh64, xxh3-128) digests
"""

# Get version
try:
    from importlib.metadata import version as _version
    __version__ = _version("hashdupes")
except Exception:
    import tomllib
    from pathlib import Path

    with open(Path(__file__).resolve().parents[2] / "pyproject.toml", "rb") as f:
        __version__ = tomllib.load(f)["project"]["version"]

# Public API: only what users should import directly
from hashdupes.commands import DeduplicationCommand, find_duplicates
from hashdupes.core import (
    DeduplicationParams, DeduplicationStats, ErrorPolicy, FileRecord, GroupKey,
    HashAlgorithmName, HashResult, hash_content)
from hashdupes.core.errors import (
    DeduplicationError, EnumerationAccessDenied, FileAccessError,
    ReadInvariantViolation, AlgorithmInitError, OperationCancelled)
from hashdupes.utils.convert_utils import ConvertUtils

__all__ = [
    "DeduplicationCommand",
    "find_duplicates",
    "hash_content",
    "DeduplicationParams",
    "DeduplicationStats",
    "ErrorPolicy",
    "FileRecord",
    "GroupKey",
    "HashAlgorithmName",
    "HashResult",
    "DeduplicationError",
    "EnumerationAccessDenied",
    "FileAccessError",
    "ReadInvariantViolation",
    "AlgorithmInitError",
    "OperationCancelled",
    "ConvertUtils",
    "__version__",
]
