"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

core/errors.py
Error kinds raised by the scanner, hasher and deduplication pipeline.
"""


class DeduplicationError(Exception):
    """Base exception for every failure raised by the deduplication engine."""


class EnumerationAccessDenied(DeduplicationError):
    """Raised when a directory cannot be listed by the fast enumeration strategy."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Access denied while listing directory: {path}")


class HashingError(DeduplicationError):
    """Base class for per-file hashing failures. Carries the offending path and operation."""

    def __init__(self, path: str, operation: str, message: str):
        self.path = path
        self.operation = operation
        super().__init__(f"{message} ({operation} {path})")


class FileAccessError(HashingError):
    """A candidate file could not be opened or read."""

    def __init__(self, path: str, operation: str, reason: object = None):
        message = f"Cannot {operation} file"
        if reason is not None:
            message += f": {reason}"
        super().__init__(path, operation, message)


class ReadInvariantViolation(HashingError):
    """A read returned zero bytes before the expected byte count was consumed."""

    def __init__(self, path: str, expected: int, consumed: int):
        self.expected = expected
        self.consumed = consumed
        super().__init__(
            path,
            "read",
            f"Unexpected end of data after {consumed} of {expected} bytes"
        )


class AlgorithmInitError(DeduplicationError):
    """The requested digest algorithm could not be constructed."""

    def __init__(self, algorithm: object, reason: object = None):
        self.algorithm = algorithm
        message = f"Cannot initialize hash algorithm '{algorithm}'"
        if reason is not None:
            message += f": {reason}"
        super().__init__(message)


class OperationCancelled(DeduplicationError):
    """Raised when the caller's stopped_flag requests cancellation."""
