"""
Command orchestrator for duplicate detection: scanner → deduplicator.
This is the single entry point for library callers; pure Python, no UI dependencies.
"""
from typing import Optional, Tuple, Union

from hashdupes.core.deduplicator import DeduplicatorImpl
from hashdupes.core.interfaces import ProgressCallback, StoppedFlag
from hashdupes.core.models import (
    DeduplicationConfig, DeduplicationParams, DeduplicationStats, DuplicateMap,
    ErrorPolicy, HashAlgorithmName)
from hashdupes.core.scanner import FileScannerImpl


class DeduplicationCommand:
    """
    Orchestrates the entire workflow:
    1. Enumerate files under params.root_dir
    2. Run the deduplication pipeline with progress/cancellation support

    Usage:
        params = DeduplicationParams(root_dir="/data", test_partial_hash=True)
        duplicates, stats = DeduplicationCommand().execute(
            params,
            progress_callback=lambda stage, item, percent: ...,
            stopped_flag=cancel_event.is_set
        )
    """

    def __init__(self, deduplicator: Optional[DeduplicatorImpl] = None):
        self._deduplicator = deduplicator or DeduplicatorImpl()

    def execute(
            self,
            params: DeduplicationParams,
            progress_callback: Optional[ProgressCallback] = None,
            stopped_flag: Optional[StoppedFlag] = None
    ) -> Tuple[DuplicateMap, DeduplicationStats]:
        """
        Execute duplicate detection with given parameters.

        Returns:
            Tuple of (group key → duplicate files, statistics).
            An empty tree yields an empty mapping.

        Raises:
            FileNotFoundError / NotADirectoryError: invalid root directory
            DeduplicationError: hashing failure, unusable algorithm or cancellation
        """
        scanner = FileScannerImpl(
            root_dir=params.root_dir,
            name_filter=params.name_filter,
            recursive=params.recursive,
            excluded_dirs=params.excluded_dirs
        )

        files = scanner.scan(
            stopped_flag=stopped_flag,
            progress_callback=progress_callback
        )

        return self._deduplicator.find_duplicates(
            files,
            params,
            stopped_flag=stopped_flag,
            progress_callback=progress_callback
        )


def find_duplicates(
        root_path: str,
        name_filter: str = "*",
        max_partial_size: int = DeduplicationConfig.DEFAULT_MAX_PARTIAL_SIZE,
        test_partial_hash: bool = False,
        *,
        algorithm: Union[str, HashAlgorithmName] = DeduplicationConfig.DEFAULT_ALGORITHM,
        recursive: bool = True,
        error_policy: ErrorPolicy = ErrorPolicy.ABORT,
        progress_callback: Optional[ProgressCallback] = None,
        stopped_flag: Optional[StoppedFlag] = None
) -> DuplicateMap:
    """
    Finds files with identical content under root_path.

    Returns a mapping from rendered group key ("<digest>:<length>", plus
    ":partial" for unverified partial-hash matches) to the duplicate files.
    """
    params = DeduplicationParams(
        root_dir=root_path,
        name_filter=name_filter,
        recursive=recursive,
        max_partial_size=max_partial_size,
        algorithm=algorithm,
        test_partial_hash=test_partial_hash,
        error_policy=error_policy,
    )
    duplicates, _ = DeduplicationCommand().execute(
        params,
        progress_callback=progress_callback,
        stopped_flag=stopped_flag
    )
    return duplicates
