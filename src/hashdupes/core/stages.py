"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/stages.py
Deduplication pipeline stages for the size → hash → full-hash verification engine.

CLASS HIERARCHY
---------------
check_stopped        : Cancellation check shared by every stage
ProgressReporter     : Rate-limited progress emission for per-file stages
HashStageBase        : Shared hasher wiring and error policy
SizeStageImpl        : Drops files with a unique length (SizeStage interface)
HashGroupingStage    : Partial/full hashing by size policy, grouping by GroupKey
DisambiguationStage  : Full rehash of partial-hash groups to remove false positives

STAGE CONTRACTS
---------------
Each stage implements a `process()` method that:
  • Consumes the complete output of the previous stage
  • Returns a freshly built result; its input is never mutated
  • Reports progress via callback (stage label, current item, percent)
  • Raises OperationCancelled when stopped_flag returns True

HASHING POLICY
--------------
The hash stage hashes every candidate with start_position (1000 by default),
length = max_partial_size and buffer_size = min(100 KiB, max_partial_size).
Files no longer than buffer_size + start_position get a full hash; longer files
get a partial hash whose GroupKey carries the partial marker. Files too short to
hold the whole [start_position, start_position + max_partial_size) range are
hashed in full as well. A partial match is only a candidate duplicate;
DisambiguationStage settles it with full hashes.
"""

import logging
from collections import defaultdict
from typing import List, Iterable, Optional

from hashdupes.core.errors import OperationCancelled
from hashdupes.core.grouper import FileGrouperImpl
from hashdupes.core.interfaces import Hasher, SizeStage, GroupStage, ProgressCallback, StoppedFlag
from hashdupes.core.models import (
    DeduplicationConfig, ErrorPolicy, FileRecord, GroupKey, GroupMap,
    HashOutcome, HashResult, SkippedFile, Stage)

logger = logging.getLogger(__name__)


#=============================
# Cancellation, Progress and Base Class
#=============================
def check_stopped(stopped_flag: Optional[StoppedFlag]) -> None:
    """Raises OperationCancelled once the caller's stopped_flag returns True."""
    if stopped_flag and stopped_flag():
        raise OperationCancelled("Deduplication cancelled")


class ProgressReporter:
    """
    Emits progress every PROGRESS_INTERVAL files, on the last file, and before
    any file above LARGE_FILE_PROGRESS_THRESHOLD. Callback failures are logged
    and never reach the pipeline.
    """

    def __init__(self, stage: Stage, total: int, callback: Optional[ProgressCallback]):
        self.stage = stage
        self.total = total
        self.callback = callback
        self.processed = 0

    def file_started(self, file: FileRecord) -> None:
        if file.length > DeduplicationConfig.LARGE_FILE_PROGRESS_THRESHOLD:
            self._emit(file.path)

    def file_done(self, file: FileRecord) -> None:
        self.processed += 1
        if self.processed % DeduplicationConfig.PROGRESS_INTERVAL == 0 or self.processed == self.total:
            self._emit(file.path)

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 100.0
        return self.processed * 100.0 / self.total

    def _emit(self, item: str) -> None:
        if not self.callback:
            return
        try:
            self.callback(self.stage.value, item, self.percent)
        except Exception as e:
            logger.warning(f"Progress callback failed during {self.stage.value}: {e}")


class HashStageBase:
    """
    Base class for stages that hash files.
    Applies the ErrorPolicy to per-file failures and collects skipped files.
    """

    def __init__(
        self,
        hasher: Hasher,
        grouper: Optional[FileGrouperImpl] = None,
        error_policy: ErrorPolicy = ErrorPolicy.ABORT
    ):
        self.hasher = hasher
        self.grouper = grouper or FileGrouperImpl()
        self.error_policy = error_policy
        self.skipped_files: List[SkippedFile] = []

    def get_stage(self) -> Stage:
        """
        Returns the stage label used for progress, statistics and logging.
        Must be implemented by subclasses.
        """
        raise NotImplementedError

    def _accept(self, file: FileRecord, outcome: HashOutcome) -> Optional[HashResult]:
        """
        Returns the hash result, or None when the file is skipped.
        Under ErrorPolicy.ABORT the stored error is raised instead.
        """
        if outcome.is_ok:
            return outcome.result

        if self.error_policy == ErrorPolicy.ABORT:
            logger.error(f"{self.get_stage().value} aborted: {outcome.error}")
            return outcome.unwrap()

        logger.warning(f"Skipping {file.path}: {outcome.error}")
        self.skipped_files.append(
            SkippedFile(path=file.path, stage=self.get_stage().value, reason=str(outcome.error))
        )
        return None


# =============================
# Individual Stages
# =============================
class SizeStageImpl(SizeStage):
    def __init__(self, grouper: Optional[FileGrouperImpl] = None):
        self.grouper = grouper or FileGrouperImpl()

    def process(
            self,
            files: Iterable[FileRecord],
            stopped_flag: Optional[StoppedFlag] = None,
            progress_callback: Optional[ProgressCallback] = None
    ) -> List[FileRecord]:
        """
        Group by file length and flatten the groups of 2+ files back into one list.
        Zero-length files are left out: empty files are not duplicates of content.
        """
        check_stopped(stopped_flag)

        non_empty = (f for f in files if f.length > 0)
        size_groups = self.grouper.group_by_size(non_empty)
        candidates = [file for group in size_groups.values() for file in group]

        check_stopped(stopped_flag)
        logger.debug(f"Size grouping kept {len(candidates)} files in {len(size_groups)} groups")

        if progress_callback:
            try:
                progress_callback(Stage.SIZE.value, f"{len(candidates)} candidates", 100.0)
            except Exception as e:
                logger.warning(f"Progress callback failed during {Stage.SIZE.value}: {e}")

        return candidates


class HashGroupingStage(HashStageBase, GroupStage):
    """
    Hashes every size candidate and groups the results by GroupKey.
    """

    def __init__(
        self,
        hasher: Hasher,
        start_position: int = DeduplicationConfig.DEFAULT_START_POSITION,
        max_partial_size: int = DeduplicationConfig.DEFAULT_MAX_PARTIAL_SIZE,
        grouper: Optional[FileGrouperImpl] = None,
        error_policy: ErrorPolicy = ErrorPolicy.ABORT
    ):
        super().__init__(hasher, grouper, error_policy)
        self.start_position = start_position
        self.max_partial_size = max_partial_size
        self.buffer_size = DeduplicationConfig.get_buffer_size(max_partial_size)

    def get_stage(self) -> Stage:
        return Stage.HASH

    def process(
        self,
        candidates: Iterable[FileRecord],
        stopped_flag: Optional[StoppedFlag] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> GroupMap:
        # Materialize first: progress needs the total
        candidates = list(candidates)
        progress = ProgressReporter(self.get_stage(), len(candidates), progress_callback)

        def key_for(file: FileRecord) -> Optional[GroupKey]:
            check_stopped(stopped_flag)
            progress.file_started(file)
            # The partial range must lie inside the file
            outcome = self.hasher.try_hash_content(
                file.path,
                self.start_position,
                self.max_partial_size,
                self.buffer_size,
                force=file.length < self.start_position + self.max_partial_size
            )
            progress.file_done(file)

            result = self._accept(file, outcome)
            if result is None:
                return None
            return GroupKey.from_hash_result(result)

        groups = self.grouper.group_by_key(candidates, key_for)
        logger.debug(
            f"Hash grouping: {len(candidates)} files → {len(groups)} groups "
            f"({sum(1 for key in groups if key.partial)} partial)"
        )
        return groups


class DisambiguationStage(HashStageBase, GroupStage):
    """
    Replaces every partial-hash group with groups keyed by full-content hashes.
    Uses the same hasher (and so the same algorithm) as the hash stage.
    """

    def get_stage(self) -> Stage:
        return Stage.FULL

    def process(
        self,
        groups: GroupMap,
        stopped_flag: Optional[StoppedFlag] = None,
        progress_callback: Optional[ProgressCallback] = None
    ) -> GroupMap:
        output: GroupMap = {}
        to_verify = []

        for key, members in groups.items():
            if key.partial and len(members) > 1:
                to_verify.append(members)
            else:
                output[key] = list(members)

        progress = ProgressReporter(self.get_stage(), sum(len(m) for m in to_verify), progress_callback)
        verified: GroupMap = defaultdict(list)

        for members in to_verify:
            for file in members:
                check_stopped(stopped_flag)
                progress.file_started(file)
                outcome = self.hasher.try_hash_content(file.path, force=True)
                progress.file_done(file)

                result = self._accept(file, outcome)
                if result is not None:
                    verified[GroupKey.from_hash_result(result)].append(file)

        for key, members in verified.items():
            output.setdefault(key, []).extend(members)

        result_groups = self.grouper.drop_singletons(output)
        logger.debug(
            f"Full-hash verification: {len(to_verify)} partial groups → "
            f"{len(result_groups)} groups after cleanup"
        )
        return result_groups
