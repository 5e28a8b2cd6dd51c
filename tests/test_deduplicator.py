"""
End-to-end tests for DeduplicatorImpl.
Covers the documented scenarios, the properties of the final mapping,
error policies, cancellation and statistics.
"""
import hashlib
from pathlib import Path

import pytest
import xxhash

from hashdupes.core.deduplicator import DeduplicatorImpl
from hashdupes.core.hasher import HasherImpl
from hashdupes.core.errors import FileAccessError, OperationCancelled
from hashdupes.core.models import (
    DeduplicationParams, ErrorPolicy, FileRecord, GroupKey, Stage)


def _records(*paths: Path):
    return [FileRecord(path=str(p), length=p.stat().st_size) for p in paths]


def _membership(duplicates):
    return sorted(sorted(f.path for f in members) for members in duplicates.values())


@pytest.fixture
def mixed_tree(tmp_path, partial_twins):
    """
    Small duplicates, large true duplicates, a large near-duplicate and the
    partial_twins false positive, all in one directory.
    """
    small = b"small duplicate content"
    (tmp_path / "s1.txt").write_bytes(small)
    (tmp_path / "s2.txt").write_bytes(small)

    large = bytes(range(256)) * 1000
    (tmp_path / "l1.bin").write_bytes(large)
    (tmp_path / "l2.bin").write_bytes(large)
    (tmp_path / "l3.bin").write_bytes(large[:-1] + b"\x00")

    paths = sorted(p for p in tmp_path.iterdir() if p.is_file())
    return tmp_path, _records(*paths)


class TestScenarios:
    def test_identical_small_files_form_one_group(self, tmp_path):
        (tmp_path / "a").write_bytes(b"0123456789")
        (tmp_path / "b").write_bytes(b"0123456789")
        (tmp_path / "c").write_bytes(b"01234567890123456789")
        files = _records(tmp_path / "a", tmp_path / "b", tmp_path / "c")

        duplicates, _ = DeduplicatorImpl().find_duplicates(files, DeduplicationParams(root_dir=str(tmp_path)))

        expected_key = f"{hashlib.sha1(b'0123456789').hexdigest()}:10"
        assert list(duplicates) == [expected_key]
        assert [f.path for f in duplicates[expected_key]] == [str(tmp_path / "a"), str(tmp_path / "b")]

    def test_partial_match_kept_without_verification(self, partial_twins):
        files = _records(partial_twins["first"], partial_twins["second"])
        params = DeduplicationParams(root_dir=str(partial_twins["first"].parent), max_partial_size=100 * 1024)

        duplicates, _ = DeduplicatorImpl().find_duplicates(files, params)

        assert len(duplicates) == 1
        key = next(iter(duplicates))
        assert key.endswith(GroupKey.PARTIAL_MARKER)
        assert len(duplicates[key]) == 2

    def test_partial_match_removed_by_verification(self, partial_twins):
        files = _records(partial_twins["first"], partial_twins["second"])
        params = DeduplicationParams(
            root_dir=str(partial_twins["first"].parent),
            max_partial_size=100 * 1024,
            test_partial_hash=True
        )

        duplicates, _ = DeduplicatorImpl().find_duplicates(files, params)

        assert duplicates == {}

    def test_no_files_gives_empty_mapping(self, tmp_path):
        duplicates, stats = DeduplicatorImpl().find_duplicates([], DeduplicationParams(root_dir=str(tmp_path)))

        assert duplicates == {}
        assert stats.stage_stats["size"]["files"] == 0


class TestMappingProperties:
    def test_groups_have_equal_lengths_and_no_singletons(self, mixed_tree):
        root, files = mixed_tree
        for verify in (False, True):
            params = DeduplicationParams(root_dir=str(root), test_partial_hash=verify)
            duplicates, _ = DeduplicatorImpl().find_duplicates(files, params)

            assert duplicates
            for members in duplicates.values():
                assert len(members) >= 2
                assert len({f.length for f in members}) == 1

    def test_largest_groups_come_first(self, mixed_tree):
        root, files = mixed_tree
        duplicates, _ = DeduplicatorImpl().find_duplicates(files, DeduplicationParams(root_dir=str(root)))

        lengths = [members[0].length for members in duplicates.values()]
        assert lengths == sorted(lengths, reverse=True)

    def test_repeated_runs_are_identical(self, mixed_tree):
        root, files = mixed_tree
        params = DeduplicationParams(root_dir=str(root), test_partial_hash=True)

        first, _ = DeduplicatorImpl().find_duplicates(files, params)
        second, _ = DeduplicatorImpl().find_duplicates(files, params)

        assert first == second

    def test_verification_only_splits_groups(self, mixed_tree):
        root, files = mixed_tree
        unverified, _ = DeduplicatorImpl().find_duplicates(files, DeduplicationParams(root_dir=str(root)))
        verified, _ = DeduplicatorImpl().find_duplicates(
            files, DeduplicationParams(root_dir=str(root), test_partial_hash=True))

        before = [set(group) for group in _membership(unverified)]
        for group in _membership(verified):
            assert any(set(group) <= candidate for candidate in before)

        # l3 differs from l1/l2 only in its last byte
        assert [str(root / "l1.bin"), str(root / "l2.bin")] in _membership(verified)
        assert not any(str(root / "l3.bin") in group for group in _membership(verified))
        assert not any(":partial" in key for key in verified)

    def test_rendered_keys_parse_back(self, mixed_tree):
        root, files = mixed_tree
        duplicates, _ = DeduplicatorImpl().find_duplicates(files, DeduplicationParams(root_dir=str(root)))

        for key, members in duplicates.items():
            digest, length, *rest = key.split(":")
            assert int(length) == members[0].length
            assert len(digest) == 40  # SHA-1 default
            assert rest in ([], ["partial"])


class TestErrorPolicies:
    def test_abort_propagates(self, tmp_path):
        (tmp_path / "a").write_bytes(b"abc")
        files = _records(tmp_path / "a") + [FileRecord(path=str(tmp_path / "gone"), length=3)]

        with pytest.raises(FileAccessError):
            DeduplicatorImpl().find_duplicates(files, DeduplicationParams(root_dir=str(tmp_path)))

    def test_skip_records_and_continues(self, tmp_path):
        (tmp_path / "a").write_bytes(b"abc")
        (tmp_path / "b").write_bytes(b"abc")
        files = _records(tmp_path / "a", tmp_path / "b") + [FileRecord(path=str(tmp_path / "gone"), length=3)]
        params = DeduplicationParams(root_dir=str(tmp_path), error_policy=ErrorPolicy.SKIP)

        duplicates, stats = DeduplicatorImpl().find_duplicates(files, params)

        assert _membership(duplicates) == [[str(tmp_path / "a"), str(tmp_path / "b")]]
        assert stats.skipped_count == 1
        assert stats.skipped_files[0].path == str(tmp_path / "gone")

    def test_skip_during_verification(self, tmp_path, monkeypatch):
        large = bytes(range(256)) * 1000
        paths = [tmp_path / "l1.bin", tmp_path / "l2.bin", tmp_path / "l3.bin"]
        for p in paths:
            p.write_bytes(large)
        files = _records(*paths)
        params = DeduplicationParams(
            root_dir=str(tmp_path), test_partial_hash=True, error_policy=ErrorPolicy.SKIP)

        dedup = DeduplicatorImpl()
        original_run_stage = DeduplicatorImpl._run_stage

        def run_stage(stats, stage_name, stage, data, stopped_flag, progress_callback):
            if stage_name == "full":
                paths[2].unlink()
            return original_run_stage(stats, stage_name, stage, data, stopped_flag, progress_callback)

        monkeypatch.setattr(DeduplicatorImpl, "_run_stage", staticmethod(run_stage))
        duplicates, stats = dedup.find_duplicates(files, params)

        assert _membership(duplicates) == [[str(paths[0]), str(paths[1])]]
        assert [s.stage for s in stats.skipped_files] == [Stage.FULL.value]


class TestCancellationAndProgress:
    def test_cancel_mid_hashing(self, mixed_tree):
        root, files = mixed_tree
        calls = 0

        def stopped_flag():
            nonlocal calls
            calls += 1
            return calls > 4

        with pytest.raises(OperationCancelled):
            DeduplicatorImpl().find_duplicates(files, DeduplicationParams(root_dir=str(root)), stopped_flag=stopped_flag)

    def test_failing_progress_callback_does_not_change_result(self, mixed_tree):
        root, files = mixed_tree
        params = DeduplicationParams(root_dir=str(root), test_partial_hash=True)

        def broken(*args):
            raise RuntimeError("ui went away")

        expected, _ = DeduplicatorImpl().find_duplicates(files, params)
        actual, _ = DeduplicatorImpl().find_duplicates(files, params, progress_callback=broken)

        assert actual == expected

    def test_stage_labels_reported(self, mixed_tree):
        root, files = mixed_tree
        stages = set()

        DeduplicatorImpl().find_duplicates(
            files,
            DeduplicationParams(root_dir=str(root), test_partial_hash=True),
            progress_callback=lambda stage, item, percent: stages.add(stage)
        )

        assert stages == {Stage.SIZE.value, Stage.HASH.value, Stage.FULL.value}


class TestInjectedHasher:
    def test_injected_hasher_algorithm_is_used_and_logged(self, tmp_path, caplog):
        (tmp_path / "a").write_bytes(b"same bytes")
        (tmp_path / "b").write_bytes(b"same bytes")
        files = _records(tmp_path / "a", tmp_path / "b")
        params = DeduplicationParams(root_dir=str(tmp_path))  # SHA-1 requested

        with caplog.at_level("INFO", logger="hashdupes"):
            duplicates, _ = DeduplicatorImpl(hasher=HasherImpl("xxh64")).find_duplicates(files, params)

        assert list(duplicates) == [f"{xxhash.xxh64(b'same bytes').hexdigest()}:10"]
        assert "Finding duplicates with xxHash64" in caplog.text
        assert "SHA-1" not in caplog.text


class TestStats:
    def test_stage_keys(self, mixed_tree):
        root, files = mixed_tree

        _, stats = DeduplicatorImpl().find_duplicates(files, DeduplicationParams(root_dir=str(root)))
        assert list(stats.stage_stats) == ["size", "hash"]

        _, stats = DeduplicatorImpl().find_duplicates(
            files, DeduplicationParams(root_dir=str(root), test_partial_hash=True))
        assert list(stats.stage_stats) == ["size", "hash", "full"]
        assert stats.total_time >= 0
