"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

deduplicator.py
Implements the pipeline-based duplicate detection engine over FileRecord sequences:
    size grouping → hash grouping → (optional) full-hash verification → final mapping
"""
import logging
import time
from typing import Iterable, Optional, Tuple

from hashdupes.core.grouper import FileGrouperImpl
from hashdupes.core.hasher import HasherImpl
from hashdupes.core.interfaces import Hasher, ProgressCallback, StoppedFlag
from hashdupes.core.models import (
    DeduplicationParams, DeduplicationStats, DuplicateMap, FileRecord, GroupMap)
from hashdupes.core.stages import SizeStageImpl, HashGroupingStage, DisambiguationStage
from hashdupes.utils.convert_utils import ConvertUtils

logger = logging.getLogger(__name__)


# =============================
# Main Deduplicator Class
# =============================
class DeduplicatorImpl:
    """
    Runs the multi-stage duplicate detection pipeline and assembles the final mapping.
    Each stage hands a freshly built result to the next one; statistics are
    collected per stage.
    """
    def __init__(self, hasher: Optional[Hasher] = None, grouper: Optional[FileGrouperImpl] = None):
        self.hasher = hasher
        self.grouper = grouper or FileGrouperImpl()

    def find_duplicates(
        self,
        files: Iterable[FileRecord],
        params: DeduplicationParams,
        stopped_flag: Optional[StoppedFlag] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> Tuple[DuplicateMap, DeduplicationStats]:
        """
        Main deduplication pipeline.
        Args:
            files: File records to examine (may be a lazy iterator)
            params: Hashing and verification settings
            stopped_flag: Function that returns True if operation should be stopped.
            progress_callback: Reports (stage, current item, percent).
        Returns:
            Tuple of (group key → duplicate files, statistics)
        Raises:
            AlgorithmInitError: params.algorithm cannot be constructed
            HashingError: a file could not be hashed under ErrorPolicy.ABORT
            OperationCancelled: stopped_flag returned True
        """
        stats = DeduplicationStats()
        total_start_time = time.time()
        hasher = self.hasher or HasherImpl(params.algorithm)
        # An injected hasher keeps its own algorithm
        algorithm = hasher.algorithm.name
        if algorithm != params.algorithm:
            logger.debug(f"Injected hasher uses {algorithm.value}, params request {params.algorithm.value}")

        logger.info(
            f"Finding duplicates with {algorithm.display_name}, "
            f"partial hash size {ConvertUtils.bytes_to_human(params.max_partial_size)}, "
            f"verification {'on' if params.test_partial_hash else 'off'}"
        )

        # Stage 1: group by size
        stats.notify_stage_start("size")
        start_time = time.time()
        candidates = SizeStageImpl(self.grouper).process(
            files,
            stopped_flag=stopped_flag,
            progress_callback=progress_callback
        )
        stats.update_stage(
            stage_name="size",
            groups_found=len({f.length for f in candidates}),
            files_processed=len(candidates),
            duration=time.time() - start_time
        )

        # Stage 2: partial/full hash grouping
        hash_stage = HashGroupingStage(
            hasher,
            start_position=params.start_position,
            max_partial_size=params.max_partial_size,
            grouper=self.grouper,
            error_policy=params.error_policy
        )
        groups = self._run_stage(stats, "hash", hash_stage, candidates, stopped_flag, progress_callback)
        stats.skipped_files.extend(hash_stage.skipped_files)

        # Stage 3: optional full-hash verification of partial groups
        if params.test_partial_hash:
            full_stage = DisambiguationStage(hasher, grouper=self.grouper, error_policy=params.error_policy)
            groups = self._run_stage(stats, "full", full_stage, groups, stopped_flag, progress_callback)
            stats.skipped_files.extend(full_stage.skipped_files)

        duplicates = self.assemble(groups)

        stats.total_time = time.time() - total_start_time
        logger.info(
            f"Found {len(duplicates)} duplicate groups "
            f"({sum(len(members) for members in duplicates.values())} files) "
            f"in {stats.total_time:.2f}s"
        )
        return duplicates, stats

    @staticmethod
    def assemble(groups: GroupMap) -> DuplicateMap:
        """
        Builds the terminal mapping: singletons removed, keys rendered as strings,
        largest files first (discovery order among equal lengths).
        """
        retained = [(key, members) for key, members in groups.items() if len(members) >= 2]
        retained.sort(key=lambda item: -item[0].length)
        return {str(key): list(members) for key, members in retained}

    @staticmethod
    def _run_stage(stats, stage_name, stage, data, stopped_flag, progress_callback) -> GroupMap:
        stats.notify_stage_start(stage_name)
        start_time = time.time()
        groups = stage.process(data, stopped_flag=stopped_flag, progress_callback=progress_callback)
        DeduplicatorImpl._update_stats(stats, stage_name, time.time() - start_time, groups)
        return groups

    @staticmethod
    def _update_stats(
        stats: DeduplicationStats,
        stage: str,
        duration: float,
        groups: GroupMap
    ):
        """Helper to update DeduplicationStats after a grouping stage."""
        stats.update_stage(
            stage_name=stage,
            groups_found=len(groups),
            files_processed=sum(len(members) for members in groups.values()),
            duration=duration
        )
