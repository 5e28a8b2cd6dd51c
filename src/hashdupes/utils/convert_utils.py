"""
Copyright (c) 2025 initumX (initum.x@gmail.com)
Licensed under the MIT License

utils/convert_utils.py
Size conversions used by configuration parsing and log output.
All units are binary (1K = 1024 bytes).
"""
import re

# "<number>[K|M|G|T][B]", e.g. 100KB, 1.5M, 4096
_SIZE_PATTERN = re.compile(r"^(-?\d+(?:\.\d+)?)\s*([KMGT]?)B?$")
_MULTIPLIERS = {"": 1, "K": 1024, "M": 1024 ** 2, "G": 1024 ** 3, "T": 1024 ** 4}
_DISPLAY_UNITS = ("KB", "MB", "GB", "TB")


class ConvertUtils:
    @staticmethod
    def bytes_to_human(size_bytes: int) -> str:
        """Renders a byte count for logs, e.g. 512B, 1.50KB, 3.20MB."""
        if size_bytes < 1024:
            return f"{max(size_bytes, 0)}B"

        value = float(size_bytes)
        for unit in _DISPLAY_UNITS:
            value /= 1024
            if value < 1024 or unit == _DISPLAY_UNITS[-1]:
                break
        return f"{value:.2f}{unit}"

    @staticmethod
    def human_to_bytes(size_str: str) -> int:
        """
        Parses a partial-hash size such as '100KB', '1.5M' or '4096' into bytes.
        Raises ValueError for negative or malformed sizes.
        """
        match = _SIZE_PATTERN.match(size_str.strip().upper())
        if not match:
            raise ValueError(f"Invalid size: '{size_str}' (expected e.g. 100KB, 1.5M, 4096)")

        number, unit = match.groups()
        value = float(number)
        if value < 0:
            raise ValueError(f"Negative size not allowed: '{size_str.strip()}'")
        return int(value * _MULTIPLIERS[unit])
