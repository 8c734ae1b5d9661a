"""
Input validation functions.
"""

import re


def validate_name(name: str, kind: str = "Name") -> None:
    """
    Validate a pool, namespace or image name.

    Args:
        name: Name to validate
        kind: What the name is for, used in error messages

    Raises:
        ValueError: If name is invalid
    """
    if not name:
        raise ValueError(f"{kind} cannot be empty")

    if len(name) > 255:
        raise ValueError(f"{kind} must be at most 255 characters")

    # "/" separates spec segments and "@" introduces a snapshot name
    if not re.match(r"^[^/@\s]+$", name):
        raise ValueError(f"{kind} must not contain '/', '@' or whitespace")


def validate_size(size: int) -> None:
    """
    Validate an image size in bytes.

    Raises:
        ValueError: If size is not positive
    """
    if size <= 0:
        raise ValueError("Size must be a positive number of bytes")


def parse_size(raw: str) -> int:
    """
    Parse a size given in bytes or with a binary suffix (K, M, G, T).

    Examples:
        "1073741824" -> 1073741824
        "1G" -> 1073741824
        "512M" -> 536870912

    Raises:
        ValueError: If the value cannot be parsed
    """
    match = re.match(r"^\s*(\d+)\s*([KMGT]?)(?:i?B)?\s*$", raw, re.IGNORECASE)
    if not match:
        raise ValueError(f"Invalid size: {raw}")

    number, unit = match.groups()
    exponent = " KMGT".index(unit.upper()) if unit else 0
    size = int(number) * (1024 ** exponent)
    validate_size(size)
    return size
