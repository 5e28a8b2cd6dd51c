"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

interfaces.py

Defines core interfaces (Protocols) used throughout the deduplication system.

Key Components:
---------------
- HashContext / HashAlgorithm: incremental hashing, one fresh context per hashing call.
- Hasher: full or bounded-range content hashing producing HashResult.
- FileScanner: lazy directory enumeration yielding FileRecord.
- FileGrouper: bucketing of file records by size or by a computed key.
- SizeStage / GroupStage: individual stages of the deduplication pipeline.
"""

from typing import Protocol, List, Dict, Iterable, Iterator, Optional, Callable, Any, Union
import os

from hashdupes.core.models import (
    FileRecord,
    GroupMap,
    HashAlgorithmName,
    HashOutcome,
    HashResult,
)

# (stage label, current item label, percent complete or None when the total is unknown)
ProgressCallback = Callable[[str, str, Optional[float]], None]
StoppedFlag = Callable[[], bool]

# A path on disk or an in-memory byte sequence
HashSource = Union[str, os.PathLike, bytes, bytearray, memoryview]


# ===== Interfaces =====

class HashContext(Protocol):
    """Incremental hash state: fed with update(), finalized once with digest()."""
    def update(self, data: bytes) -> None: ...
    def digest(self) -> bytes: ...


class HashAlgorithm(Protocol):
    """
    Factory for incremental hash contexts.

    Allows plugging in hashlib or xxHash digests without affecting
    the rest of the deduplication logic.
    """
    name: HashAlgorithmName

    def new(self) -> HashContext:
        """Returns a fresh, unused hash context."""
        ...


class Hasher(Protocol):
    """Interface for hashing whole content or a bounded byte range."""
    algorithm: HashAlgorithm

    def hash_content(
        self,
        source: HashSource,
        start_position: int,
        length: int,
        buffer_size: int,
        force: bool = False
    ) -> HashResult: ...

    def try_hash_content(
        self,
        source: HashSource,
        start_position: int,
        length: int,
        buffer_size: int,
        force: bool = False
    ) -> HashOutcome: ...


class FileScanner(Protocol):
    """
    Interface for enumerating file records under a root directory.
    """
    def scan(
        self,
        stopped_flag: Optional[StoppedFlag] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> Iterator[FileRecord]:
        """
        Lazily yield file records matching the configured filters.

        Args:
            stopped_flag: Function that returns True if operation should be canceled.
            progress_callback: Optional callback for reporting progress.
        """
        ...


class FileGrouper(Protocol):
    """
    Interface for bucketing file records. Every returned bucket holds 2+ files.
    """
    def group_by_size(self, files: Iterable[FileRecord]) -> Dict[int, List[FileRecord]]:
        """Group files by their length in bytes."""
        ...

    def group_by_key(
        self,
        files: Iterable[FileRecord],
        key_func: Callable[[FileRecord], Any]
    ) -> Dict[Any, List[FileRecord]]:
        """Group files by a computed key; files whose key is None are left out."""
        ...


# =============================
# Stage Interfaces
# =============================

class SizeStage(Protocol):
    """
    First stage of deduplication: drop files whose length is unique.
    """
    def process(
        self,
        files: Iterable[FileRecord],
        stopped_flag: Optional[StoppedFlag] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> List[FileRecord]:
        """
        Returns the files that share their length with at least one other file,
        flattened back into a single list.
        """
        ...


class GroupStage(Protocol):
    """
    A hashing stage that turns candidates into a fresh GroupMap.
    """
    def process(
        self,
        candidates: Any,
        stopped_flag: Optional[StoppedFlag] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> GroupMap:
        ...
