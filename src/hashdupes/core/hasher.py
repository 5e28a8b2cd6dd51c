"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

hasher.py
Implements content hashing over whole files or bounded byte ranges with pluggable algorithms.

HasherImpl streams the selected range through a fresh incremental hash context,
reading at most buffer_size bytes at a time into a single reusable buffer.
Whether a call hashes a range or the whole content is decided here:

    min_data_length = buffer_size + start_position
    force or content length <= min_data_length  -> full hash
    otherwise                                   -> [start_position, start_position + length)
"""

import hashlib
import io
import logging
import os
from typing import BinaryIO, Union

import xxhash

from hashdupes.core.errors import AlgorithmInitError, FileAccessError, HashingError, ReadInvariantViolation
from hashdupes.core.interfaces import HashAlgorithm, HashContext, Hasher, HashSource
from hashdupes.core.models import DeduplicationConfig, HashAlgorithmName, HashOutcome, HashResult

logger = logging.getLogger(__name__)

MEMORY_SOURCE_LABEL = "<memory>"


class HashlibAlgorithmImpl(HashAlgorithm):
    """MD5 and the SHA family via hashlib."""

    def __init__(self, name: HashAlgorithmName):
        self.name = name

    def new(self) -> HashContext:
        return hashlib.new(self.name.value)


# Use the same way to implement and use any other hashing algorithm
class XXHashAlgorithmImpl(HashAlgorithm):
    """Non-cryptographic xxHash digests, much faster than hashlib on large files."""

    _FACTORIES = {
        HashAlgorithmName.XXH64: xxhash.xxh64,
        HashAlgorithmName.XXH128: xxhash.xxh3_128,
    }

    def __init__(self, name: HashAlgorithmName = HashAlgorithmName.XXH64):
        if name not in self._FACTORIES:
            raise AlgorithmInitError(name, "not an xxHash algorithm")
        self.name = name

    def new(self) -> HashContext:
        return self._FACTORIES[self.name]()


def resolve_algorithm(algorithm: Union[str, HashAlgorithmName, HashAlgorithm]) -> HashAlgorithm:
    """
    Builds the algorithm factory for a name and probes it once,
    so an unusable algorithm fails here rather than on the first file.

    Raises:
        AlgorithmInitError: unknown name, or the runtime refuses to construct it
    """
    if not isinstance(algorithm, str):
        return algorithm

    name = HashAlgorithmName.parse(algorithm)
    if name in (HashAlgorithmName.XXH64, HashAlgorithmName.XXH128):
        impl = XXHashAlgorithmImpl(name)
    else:
        impl = HashlibAlgorithmImpl(name)

    try:
        impl.new()
    except (ValueError, TypeError) as e:
        # e.g. md5 on a FIPS-restricted OpenSSL build
        raise AlgorithmInitError(name, e) from e
    return impl


class HasherImpl(Hasher):
    """
    A hasher implementation that supports any algorithm via the HashAlgorithm interface.
    Every call owns its buffer, hash context and file handle for its whole duration.
    """

    def __init__(self, algorithm: Union[str, HashAlgorithmName, HashAlgorithm] = DeduplicationConfig.DEFAULT_ALGORITHM):
        self.algorithm = resolve_algorithm(algorithm)

    def hash_content(
        self,
        source: HashSource,
        start_position: int = 0,
        length: int = DeduplicationConfig.DEFAULT_MAX_PARTIAL_SIZE,
        buffer_size: int = DeduplicationConfig.MAX_BUFFER_SIZE,
        force: bool = False
    ) -> HashResult:
        """
        Hashes either the entire content of source or length bytes starting at start_position.

        Args:
            source: path to a file, or an in-memory byte sequence
            start_position: offset of the hashed range (ignored for full hashes)
            length: size of the hashed range
            buffer_size: maximum bytes per read; also sets the full-hash threshold
            force: always hash the whole content

        Raises:
            ValueError: invalid start_position, length or buffer_size
            FileAccessError: source cannot be opened or read
            ReadInvariantViolation: content ended before the expected byte count
        """
        self._validate(start_position, length, buffer_size)
        path = self._describe(source)

        with self._open(source, path) as stream:
            total_length = self._content_length(stream, path)
            min_data_length = buffer_size + start_position

            if force or total_length <= min_data_length:
                is_partial, offset, count = False, 0, total_length
            else:
                is_partial, offset, count = True, start_position, length

            digest = self._digest_range(stream, path, offset, count, buffer_size)

        logger.debug(
            f"{'Partial' if is_partial else 'Full'} {self.algorithm.name.value} hash of {path}: "
            f"{count} bytes at offset {offset}"
        )
        return HashResult(
            path=path,
            length=total_length,
            algorithm=self.algorithm.name,
            digest=digest,
            is_partial_hash=is_partial,
            start_position=offset,
            hashed_content_size=count,
        )

    def try_hash_content(
        self,
        source: HashSource,
        start_position: int = 0,
        length: int = DeduplicationConfig.DEFAULT_MAX_PARTIAL_SIZE,
        buffer_size: int = DeduplicationConfig.MAX_BUFFER_SIZE,
        force: bool = False
    ) -> HashOutcome:
        """Same as hash_content, but per-file failures come back as HashOutcome.err."""
        try:
            return HashOutcome.ok(self.hash_content(source, start_position, length, buffer_size, force))
        except HashingError as e:
            return HashOutcome.err(e)

    def _digest_range(self, stream: BinaryIO, path: str, offset: int, count: int, buffer_size: int) -> bytes:
        """Feeds exactly count bytes starting at offset into a fresh hash context."""
        context = self.algorithm.new()
        buffer = bytearray(min(buffer_size, count))
        view = memoryview(buffer)
        remaining = count

        try:
            stream.seek(offset)
            while remaining > 0:
                read = stream.readinto(view[:min(remaining, buffer_size)])
                if not read:
                    raise ReadInvariantViolation(path, expected=count, consumed=count - remaining)
                context.update(view[:read])
                remaining -= read
        except OSError as e:
            raise FileAccessError(path, "read", e) from e

        return context.digest()

    @staticmethod
    def _validate(start_position: int, length: int, buffer_size: int) -> None:
        if not 0 <= start_position <= DeduplicationConfig.MAX_START_POSITION:
            raise ValueError(
                f"start_position must be between 0 and {DeduplicationConfig.MAX_START_POSITION}, "
                f"got {start_position}"
            )
        if length < 0:
            raise ValueError(f"length cannot be negative, got {length}")
        if buffer_size <= 0:
            raise ValueError(f"buffer_size must be positive, got {buffer_size}")

    @staticmethod
    def _describe(source: HashSource) -> str:
        if isinstance(source, (bytes, bytearray, memoryview)):
            return MEMORY_SOURCE_LABEL
        return os.fspath(source)

    @staticmethod
    def _open(source: HashSource, path: str) -> BinaryIO:
        if isinstance(source, (bytes, bytearray, memoryview)):
            return io.BytesIO(source)
        try:
            return open(source, "rb")
        except OSError as e:
            raise FileAccessError(path, "open", e) from e

    @staticmethod
    def _content_length(stream: BinaryIO, path: str) -> int:
        try:
            total = stream.seek(0, os.SEEK_END)
            stream.seek(0)
            return total
        except OSError as e:
            raise FileAccessError(path, "seek", e) from e


def hash_content(
    source: HashSource,
    start_position: int = 0,
    length: int = DeduplicationConfig.DEFAULT_MAX_PARTIAL_SIZE,
    buffer_size: int = DeduplicationConfig.MAX_BUFFER_SIZE,
    algorithm: Union[str, HashAlgorithmName] = DeduplicationConfig.DEFAULT_ALGORITHM,
    force: bool = False
) -> HashResult:
    """One-shot helper: builds a HasherImpl for algorithm and hashes source."""
    return HasherImpl(algorithm).hash_content(source, start_position, length, buffer_size, force)
