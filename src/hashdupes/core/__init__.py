"""
Core deduplication engine: scanner, hasher, grouper, stages and pipeline orchestrator.

- FileScannerImpl: lazy directory enumeration with a glob name filter and access-denied fallback
- HasherImpl: full or bounded-range content hashing (hashlib and xxHash algorithms)
- FileGrouperImpl: size and key-based grouping that drops singleton groups
- SizeStageImpl / HashGroupingStage / DisambiguationStage: the pipeline stages
- DeduplicatorImpl: runs the stages and assembles the final duplicate mapping
- Models: FileRecord, HashResult, GroupKey, configuration and statistics

No GUI dependencies, suitable for scripts and services.
"""

from .errors import (
    DeduplicationError, EnumerationAccessDenied, HashingError, FileAccessError,
    ReadInvariantViolation, AlgorithmInitError, OperationCancelled)
from .models import (
    FileRecord, HashResult, GroupKey, GroupMap, DuplicateMap, HashOutcome, SkippedFile,
    HashAlgorithmName, Stage, ErrorPolicy, DeduplicationConfig, DeduplicationParams,
    DeduplicationStats)
from .hasher import HasherImpl, HashlibAlgorithmImpl, XXHashAlgorithmImpl, hash_content, resolve_algorithm
from .grouper import FileGrouperImpl
from .scanner import FileScannerImpl
from .stages import SizeStageImpl, HashGroupingStage, DisambiguationStage, ProgressReporter
from .deduplicator import DeduplicatorImpl

__all__ = [
    "DeduplicationError",
    "EnumerationAccessDenied",
    "HashingError",
    "FileAccessError",
    "ReadInvariantViolation",
    "AlgorithmInitError",
    "OperationCancelled",
    "FileRecord",
    "HashResult",
    "GroupKey",
    "GroupMap",
    "DuplicateMap",
    "HashOutcome",
    "SkippedFile",
    "HashAlgorithmName",
    "Stage",
    "ErrorPolicy",
    "DeduplicationConfig",
    "DeduplicationParams",
    "DeduplicationStats",
    "HasherImpl",
    "HashlibAlgorithmImpl",
    "XXHashAlgorithmImpl",
    "hash_content",
    "resolve_algorithm",
    "FileGrouperImpl",
    "FileScannerImpl",
    "SizeStageImpl",
    "HashGroupingStage",
    "DisambiguationStage",
    "ProgressReporter",
    "DeduplicatorImpl",
]
