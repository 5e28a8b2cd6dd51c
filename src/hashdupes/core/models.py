"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/models.py
Data models and configuration for file scanning, content hashing and deduplication.
"""

from dataclasses import dataclass, field
from typing import List, Dict, Optional, Union, Callable
import logging
import os
from enum import Enum

from hashdupes.core.errors import AlgorithmInitError, HashingError
from hashdupes.utils.convert_utils import ConvertUtils

logger = logging.getLogger(__name__)


# =============================
# Enums
# =============================

class HashAlgorithmName(str, Enum):
    """
    Digest algorithms supported by the content hasher.
    md5/sha* are provided by hashlib, xxh* by the xxhash package.
    """
    MD5 = "md5"
    SHA1 = "sha1"
    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"
    XXH64 = "xxh64"
    XXH128 = "xxh128"

    @property
    def digest_bits(self) -> int:
        """Width of the produced digest in bits."""
        mapping = {
            HashAlgorithmName.MD5: 128,
            HashAlgorithmName.SHA1: 160,
            HashAlgorithmName.SHA256: 256,
            HashAlgorithmName.SHA384: 384,
            HashAlgorithmName.SHA512: 512,
            HashAlgorithmName.XXH64: 64,
            HashAlgorithmName.XXH128: 128,
        }
        return mapping[self]

    @property
    def display_name(self) -> str:
        """Human-readable name for logs and summaries."""
        mapping = {
            HashAlgorithmName.MD5: "MD5",
            HashAlgorithmName.SHA1: "SHA-1",
            HashAlgorithmName.SHA256: "SHA-256",
            HashAlgorithmName.SHA384: "SHA-384",
            HashAlgorithmName.SHA512: "SHA-512",
            HashAlgorithmName.XXH64: "xxHash64",
            HashAlgorithmName.XXH128: "xxHash3-128",
        }
        return mapping.get(self, self.value)

    @classmethod
    def parse(cls, value: Union[str, "HashAlgorithmName"]) -> "HashAlgorithmName":
        """Accepts an enum member or its (case-insensitive) string value."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise AlgorithmInitError(value, "unsupported algorithm") from None

    def __repr__(self) -> str:
        return self.value


class Stage(str, Enum):
    SCAN = "Scanning"
    SIZE = "Size grouping"
    HASH = "Hash grouping"
    FULL = "Full-hash verification"


class ErrorPolicy(Enum):
    """
    What the pipeline does when a single file cannot be hashed.
    ABORT propagates the error and fails the run; SKIP records the file and continues.
    """
    ABORT = "abort"
    SKIP = "skip"

    def __repr__(self) -> str:
        return self.value


# =============================
# Configuration
# =============================

class DeduplicationConfig:
    DEFAULT_START_POSITION = 1000  # Partial hashes skip the first KB (headers are often shared)
    DEFAULT_MAX_PARTIAL_SIZE = 100 * 1024  # Files at or below this size always get a full hash
    MAX_BUFFER_SIZE = 100 * 1024
    MAX_START_POSITION = 1024 ** 4  # 1 TiB
    DEFAULT_ALGORITHM = HashAlgorithmName.SHA1
    PROGRESS_INTERVAL = 100  # Report progress every N files
    LARGE_FILE_PROGRESS_THRESHOLD = 50 * 1024 * 1024  # Always report before hashing files above this size

    @staticmethod
    def get_buffer_size(max_partial_size: int) -> int:
        return min(DeduplicationConfig.MAX_BUFFER_SIZE, max_partial_size)


# ======================
#  Core Data Models
# ======================

@dataclass(frozen=True)
class FileRecord:
    """
    A single file found by enumeration: its path and its byte length.
    Immutable once created.
    """
    path: str
    length: int  # in bytes

    def __post_init__(self):
        if self.length < 0:
            raise ValueError(f"File length cannot be negative: {self.path} ({self.length})")

    @property
    def name(self) -> str:
        return os.path.basename(self.path)

    def __repr__(self):
        return f"<FileRecord path={self.path}, length={self.length}>"


@dataclass(frozen=True)
class HashResult:
    """
    Outcome of one hashing call on one source.

    When is_partial_hash is False the whole content was hashed:
    start_position is 0 and hashed_content_size equals length.
    """
    path: str
    length: int
    algorithm: HashAlgorithmName
    digest: bytes
    is_partial_hash: bool
    start_position: int
    hashed_content_size: int

    @property
    def hex_digest(self) -> str:
        return self.digest.hex()

    def __repr__(self):
        kind = "partial" if self.is_partial_hash else "full"
        return f"<HashResult {kind} {self.algorithm.value}:{self.hex_digest} path={self.path}>"


@dataclass(frozen=True)
class GroupKey:
    """
    Bucket identity for candidate duplicates.
    A partial key only matches other partial keys, so partial and full
    digests never share a bucket.
    """
    PARTIAL_MARKER = ":partial"

    digest: str
    length: int
    partial: bool = False

    @classmethod
    def from_hash_result(cls, result: HashResult) -> "GroupKey":
        return cls(digest=result.hex_digest, length=result.length, partial=result.is_partial_hash)

    def __str__(self) -> str:
        key = f"{self.digest}:{self.length}"
        if self.partial:
            key += self.PARTIAL_MARKER
        return key


# Group key -> members in discovery order
GroupMap = Dict[GroupKey, List[FileRecord]]
# Rendered group key -> members; the terminal artifact handed to callers
DuplicateMap = Dict[str, List[FileRecord]]


@dataclass(frozen=True)
class HashOutcome:
    """Either a HashResult or the HashingError that prevented it."""
    result: Optional[HashResult] = None
    error: Optional[HashingError] = None

    @classmethod
    def ok(cls, result: HashResult) -> "HashOutcome":
        return cls(result=result)

    @classmethod
    def err(cls, error: HashingError) -> "HashOutcome":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> HashResult:
        """Returns the result or raises the stored error."""
        if self.error is not None:
            raise self.error
        return self.result


@dataclass(frozen=True)
class SkippedFile:
    """A file dropped from the run under ErrorPolicy.SKIP."""
    path: str
    stage: str
    reason: str


class DeduplicationStats:
    """
    Statistics collected during the deduplication process.
    """
    def __init__(self):
        self.total_time: float = 0.0
        self.stage_stats: Dict[str, Dict[str, Union[int, float]]] = {}
        self.skipped_files: List[SkippedFile] = []
        self._listeners: List[Callable[[str, Dict], None]] = []

    def add_listener(self, listener: Callable[[str, Dict], None]):
        """Adds a listener to receive updates when stats are updated."""
        self._listeners.append(listener)

    def update_stage(
            self,
            stage_name: str,
            groups_found: int,
            files_processed: int,
            duration: float
    ) -> None:
        if stage_name not in self.stage_stats:
            self.stage_stats[stage_name] = {
                "groups": 0,
                "files": 0,
                "time": 0.0
            }
        self.stage_stats[stage_name]["groups"] += groups_found
        self.stage_stats[stage_name]["files"] += files_processed
        self.stage_stats[stage_name]["time"] += duration

        self._notify(stage_name, self.stage_stats[stage_name])

    def notify_stage_start(self, stage_name: str):
        """Notifies listeners that a new stage has started."""
        self._notify(stage_name, {"status": "started"})

    def _notify(self, stage_name: str, payload: Dict) -> None:
        # Listeners are observers; a failing one must not break the run
        for listener in self._listeners:
            try:
                listener(stage_name, payload)
            except Exception as e:
                logger.warning(f"Error in stats event handler: {e}")

    @property
    def skipped_count(self) -> int:
        return len(self.skipped_files)

    def print_summary(self) -> str:
        labels = {
            "size": "Size Groups",
            "hash": "Hash Groups",
            "full": "Full Hash Groups",
        }

        lines = [
            "Deduplication Statistics:",
            f"Total Execution Time: {self.total_time:.3f}s\n",
            "Stage: GROUPS / FILES / TIME"
        ]

        for stage, data in self.stage_stats.items():
            label = labels.get(stage.lower(), stage.title())
            lines.append(f"{label}: {data['groups']} / {data['files']} / {data['time']:.3f}s")

        if self.skipped_files:
            lines.append(f"Skipped files: {len(self.skipped_files)}")

        return "\n".join(lines)


@dataclass
class DeduplicationParams:
    """Parameters for a deduplication run with validation."""
    root_dir: str
    name_filter: str = "*"
    recursive: bool = True
    excluded_dirs: List[str] = field(default_factory=list)
    max_partial_size: int = DeduplicationConfig.DEFAULT_MAX_PARTIAL_SIZE
    start_position: int = DeduplicationConfig.DEFAULT_START_POSITION
    algorithm: HashAlgorithmName = DeduplicationConfig.DEFAULT_ALGORITHM
    test_partial_hash: bool = False
    error_policy: ErrorPolicy = ErrorPolicy.ABORT

    def __post_init__(self):
        """Validate parameters immediately after creation."""
        if not self.root_dir:
            raise ValueError("Root directory cannot be empty")

        if not self.name_filter:
            self.name_filter = "*"

        if self.max_partial_size <= 0:
            raise ValueError("Maximum partial size must be positive")

        if not 0 <= self.start_position <= DeduplicationConfig.MAX_START_POSITION:
            raise ValueError(
                f"Start position must be between 0 and {DeduplicationConfig.MAX_START_POSITION}"
            )

        self.algorithm = HashAlgorithmName.parse(self.algorithm)

    @property
    def buffer_size(self) -> int:
        return DeduplicationConfig.get_buffer_size(self.max_partial_size)

    @staticmethod
    def from_human_readable(
            root_dir: str,
            max_partial_size_str: str = "100KB",
            name_filter: str = "*",
            recursive: bool = True,
            excluded_dirs: Optional[List[str]] = None,
            algorithm: Union[str, HashAlgorithmName] = DeduplicationConfig.DEFAULT_ALGORITHM,
            test_partial_hash: bool = False,
            error_policy: ErrorPolicy = ErrorPolicy.ABORT,
    ) -> 'DeduplicationParams':
        """
        Factory method to create params from human-readable inputs,
        e.g. max_partial_size_str="256K".
        """
        max_partial_size = ConvertUtils.human_to_bytes(max_partial_size_str)

        return DeduplicationParams(
            root_dir=root_dir,
            name_filter=name_filter,
            recursive=recursive,
            excluded_dirs=excluded_dirs or [],
            max_partial_size=max_partial_size,
            algorithm=algorithm,
            test_partial_hash=test_partial_hash,
            error_policy=error_policy,
        )
