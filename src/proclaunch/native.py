"""Conversion of caller-supplied values to platform-native strings.

Every value that ends up in a child's argv, environment block or working
directory goes through here. Native strings are ``str``; bytes are decoded
with the filesystem encoding (``surrogateescape`` on POSIX) so that arbitrary
byte paths survive the round trip to ``exec``.
"""

from __future__ import annotations

import os
from typing import Any, Union

from .errors import StringConversionError

__all__ = [
    "StrOrBytesPath",
    "to_native_string",
    "to_native_env_key",
]

StrOrBytesPath = Union[str, bytes, "os.PathLike[str]", "os.PathLike[bytes]"]


def to_native_string(value: Any) -> str:
    """Convert ``value`` to a native string.

    Args:
        value: str, bytes or os.PathLike

    Returns:
        The converted string

    Raises:
        StringConversionError: Unsupported type, embedded NUL, or a value
            the filesystem encoding cannot represent
    """
    if isinstance(value, os.PathLike):
        try:
            value = os.fspath(value)
        except TypeError as e:
            raise StringConversionError(value, str(e)) from e

    if isinstance(value, bytes):
        text = os.fsdecode(value)
    elif isinstance(value, str):
        text = value
    else:
        raise StringConversionError(value, f"unsupported type {type(value).__name__}")

    if "\0" in text:
        raise StringConversionError(value, "contains NUL character")

    try:
        os.fsencode(text)
    except UnicodeEncodeError as e:
        raise StringConversionError(value, str(e)) from e

    return text


def to_native_env_key(value: Any) -> str:
    """Convert an environment variable name.

    Same as :func:`to_native_string`, but empty names and names containing
    ``=`` are rejected since an environment block cannot hold them.
    """
    key = to_native_string(value)
    if not key:
        raise StringConversionError(value, "empty environment variable name")
    if "=" in key:
        raise StringConversionError(value, "environment variable name contains '='")
    return key
