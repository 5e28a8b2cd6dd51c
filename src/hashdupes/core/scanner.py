"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/scanner.py
Implements lazy directory enumeration yielding FileRecord objects.
Features:
- Glob-style file name filter (fnmatch), recursive or top-level only
- Fast strategy: os.walk that stops at the first unreadable directory
- Fallback strategy: per-directory os.scandir that logs and skips unreadable subtrees
- Skips symbolic links and zero-byte files
"""

import fnmatch
import logging
import os
import time
from pathlib import Path
from typing import Iterator, List, Optional, Set

from hashdupes.core.errors import EnumerationAccessDenied, OperationCancelled
from hashdupes.core.interfaces import FileScanner, ProgressCallback, StoppedFlag
from hashdupes.core.models import FileRecord, Stage

logger = logging.getLogger(__name__)


class FileScannerImpl(FileScanner):
    """
    Enumerates files under a root directory and filters them by name.

    Attributes:
        root_dir: Root directory to scan
        name_filter: Glob pattern matched against file names (default: every file)
        recursive: Descend into subdirectories
        excluded_dirs: Directories whose subtrees are never entered
    """

    PROGRESS_INTERVAL = 5000  # Update every 5,000 files

    def __init__(
        self,
        root_dir: str,
        name_filter: str = "*",
        recursive: bool = True,
        excluded_dirs: Optional[List[str]] = None
    ):
        self.root_dir = root_dir
        self.name_filter = name_filter or "*"
        self.recursive = recursive
        self.excluded_dirs = [str(Path(d).resolve()) for d in excluded_dirs] if excluded_dirs else []

    def scan(self,
             stopped_flag: Optional[StoppedFlag] = None,
             progress_callback: Optional[ProgressCallback] = None) -> Iterator[FileRecord]:
        """
        Lazily yields the files found in the directory tree.

        Runs the fast strategy first. If it hits an unreadable directory, the
        error-tolerant strategy takes over and files already yielded are not
        yielded again.

        Raises:
            FileNotFoundError: root directory does not exist
            NotADirectoryError: root path is not a directory
            OperationCancelled: stopped_flag returned True
        """
        root_path = Path(self.root_dir)
        if not root_path.exists():
            error_msg = f"Directory does not exist: {self.root_dir}"
            logger.error(error_msg)
            raise FileNotFoundError(error_msg)
        if not root_path.is_dir():
            error_msg = f"Not a directory: {self.root_dir}"
            logger.error(error_msg)
            raise NotADirectoryError(error_msg)

        logger.debug(f"Scanning {self.root_dir} (filter={self.name_filter!r}, recursive={self.recursive})")
        start_time = time.time()
        yielded: Set[str] = set()
        processed_files = 0

        try:
            for file in self._fast_walk(str(root_path), stopped_flag):
                yielded.add(file.path)
                processed_files += 1
                self._report(progress_callback, file.path, processed_files)
                yield file
        except EnumerationAccessDenied as e:
            logger.warning(f"{e}; falling back to error-tolerant enumeration")
            for file in self._tolerant_walk(str(root_path), stopped_flag):
                if file.path in yielded:
                    continue
                processed_files += 1
                self._report(progress_callback, file.path, processed_files)
                yield file

        if progress_callback and processed_files % self.PROGRESS_INTERVAL:
            self._emit(progress_callback, str(root_path))

        logger.debug(
            f"Scan completed in {time.time() - start_time:.2f} seconds, "
            f"found {processed_files} matching files"
        )

    def _fast_walk(self, root: str, stopped_flag: Optional[StoppedFlag]) -> Iterator[FileRecord]:
        """os.walk that raises EnumerationAccessDenied on the first unreadable directory."""

        def on_error(error: OSError) -> None:
            if isinstance(error, PermissionError):
                raise EnumerationAccessDenied(error.filename or root) from error
            logger.debug(f"Skipping unreadable directory {error.filename}: {error}")

        for current, dirs, files in os.walk(root, onerror=on_error):
            self._check_stopped(stopped_flag)

            if self.recursive:
                # Pre-filter subdirectories BEFORE os.walk enters them
                dirs[:] = [d for d in dirs if self._prefilter_dir(os.path.join(current, d))]
            else:
                dirs[:] = []

            for filename in files:
                file = self._process_file(os.path.join(current, filename), filename)
                if file:
                    yield file

    def _tolerant_walk(self, root: str, stopped_flag: Optional[StoppedFlag]) -> Iterator[FileRecord]:
        """Directory-by-directory os.scandir; unreadable directories are logged and skipped."""
        pending = [root]
        while pending:
            current = pending.pop()
            self._check_stopped(stopped_flag)

            try:
                with os.scandir(current) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                logger.warning(f"Skipping inaccessible directory {current}: {e}")
                continue

            subdirs = []
            for entry in entries:
                try:
                    is_dir = entry.is_dir(follow_symlinks=False)
                except OSError:
                    continue
                if is_dir:
                    if self.recursive and self._prefilter_dir(entry.path):
                        subdirs.append(entry.path)
                    continue
                file = self._process_file(entry.path, entry.name)
                if file:
                    yield file

            # Reverse so the stack pops directories in name order
            pending.extend(reversed(subdirs))

    @staticmethod
    def _check_stopped(stopped_flag: Optional[StoppedFlag]) -> None:
        if stopped_flag and stopped_flag():
            logger.debug("Scan interrupted by user")
            raise OperationCancelled("Scan cancelled")

    def _report(self, progress_callback: Optional[ProgressCallback], item: str, processed: int) -> None:
        if progress_callback and processed % self.PROGRESS_INTERVAL == 0:
            self._emit(progress_callback, item)

    @staticmethod
    def _emit(progress_callback: ProgressCallback, item: str) -> None:
        # Total is unknown while enumerating
        try:
            progress_callback(Stage.SCAN.value, item, None)
        except Exception as e:
            logger.warning(f"Progress callback failed during scanning: {e}")

    @staticmethod
    def _is_excluded_directory(path: str, excluded_dirs: List[str]) -> bool:
        """Check if path is within an excluded directory."""
        try:
            path_str = str(Path(path).resolve(strict=False))
            for excluded_dir in excluded_dirs:
                normalized_excluded = os.path.normpath(excluded_dir)
                if path_str.startswith(normalized_excluded + os.sep) or \
                        path_str == normalized_excluded:
                    return True
            return False
        except (OSError, ValueError):
            return False

    def _prefilter_dir(self, path: str) -> bool:
        """Skip excluded directories and symlinked directories."""
        if self.excluded_dirs and self._is_excluded_directory(path, self.excluded_dirs):
            logger.debug(f"Skipping excluded directory: {path}")
            return False
        if os.path.islink(path):
            logger.debug(f"Skipping symlinked directory: {path}")
            return False
        return True

    def _process_file(self, path: str, filename: str) -> Optional[FileRecord]:
        """
        Returns a FileRecord if the file passes all filters, else None.
        """
        if not fnmatch.fnmatch(filename, self.name_filter):
            return None

        try:
            if os.path.islink(path):
                logger.debug(f"Skipping symbolic link: {path}")
                return None
            size = os.stat(path).st_size
        except OSError as e:
            logger.debug(f"Could not get size of {path}: {e}")
            return None

        # Skip zero-byte files
        if size == 0:
            logger.debug(f"Skipping zero-byte file: {path}")
            return None

        return FileRecord(path=path, length=size)
