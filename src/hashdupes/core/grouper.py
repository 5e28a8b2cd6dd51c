"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/grouper.py
Implements file grouping strategies over FileRecord sequences.
"""

from typing import List, Dict, Any, Callable, Iterable
from collections import defaultdict

from hashdupes.core.interfaces import FileGrouper
from hashdupes.core.models import FileRecord


class FileGrouperImpl(FileGrouper):
    """
    Buckets file records by length or by any computed key.
    Buckets keep discovery order and singletons are always dropped.
    """

    def group_by_size(self, files: Iterable[FileRecord]) -> Dict[int, List[FileRecord]]:
        """Groups files by their length."""
        return self._group_by(files, lambda f: f.length)

    def group_by_key(
        self,
        files: Iterable[FileRecord],
        key_func: Callable[[FileRecord], Any]
    ) -> Dict[Any, List[FileRecord]]:
        """Groups files by a computed key (e.g. a GroupKey built from a hash)."""
        return self._group_by(files, key_func)

    @staticmethod
    def drop_singletons(groups: Dict[Any, List[FileRecord]]) -> Dict[Any, List[FileRecord]]:
        """Returns a new mapping without the buckets that hold fewer than 2 files."""
        return {key: members for key, members in groups.items() if len(members) >= 2}

    @staticmethod
    def _group_by(files: Iterable[FileRecord], key_func: Callable[[FileRecord], Any]) -> Dict[Any, List[FileRecord]]:
        """
        Helper method to group files by any computed key.
        Args:
            files: Files to group
            key_func: Computes a hashable key from a FileRecord; None leaves the file out.
                      Exceptions propagate to the caller.
        Returns:
            Dict[key, List[FileRecord]] with 2+ files per key
        """
        groups = defaultdict(list)
        for file in files:
            key = key_func(file)
            if key is not None:
                groups[key].append(file)

        return FileGrouperImpl.drop_singletons(groups)
