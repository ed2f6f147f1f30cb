"""Standard stream configuration for a child process."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from enum import Enum
from typing import IO, Any, Union

__all__ = [
    "StdioKind",
    "Stdio",
]

FdTarget = Union[int, IO[Any]]


class StdioKind(str, Enum):
    """How one standard stream of the child is wired."""

    INHERIT = "inherit"
    PIPED = "piped"
    NULL = "null"
    FD = "fd"


@dataclass(frozen=True)
class Stdio:
    """Redirection target for stdin, stdout or stderr.

    Use the constructors rather than instantiating directly:

        Stdio.inherit()      # share the parent's handle
        Stdio.piped()        # new pipe, readable/writable from the parent
        Stdio.null()         # /dev/null (NUL on Windows)
        Stdio.from_fd(fd)    # existing descriptor or file object
    """

    kind: StdioKind
    target: FdTarget | None = None

    def __post_init__(self) -> None:
        if self.kind is StdioKind.FD:
            if self.target is None:
                raise ValueError("Stdio.FD requires a descriptor")
        elif self.target is not None:
            raise ValueError(f"Stdio.{self.kind.name} takes no descriptor")

    @classmethod
    def inherit(cls) -> "Stdio":
        return cls(StdioKind.INHERIT)

    @classmethod
    def piped(cls) -> "Stdio":
        return cls(StdioKind.PIPED)

    @classmethod
    def null(cls) -> "Stdio":
        return cls(StdioKind.NULL)

    @classmethod
    def from_fd(cls, target: FdTarget) -> "Stdio":
        """Redirect to a raw descriptor or any object with ``fileno()``."""
        if not isinstance(target, int) and not hasattr(target, "fileno"):
            raise TypeError(f"expected int or file object, got {type(target).__name__}")
        if isinstance(target, int) and target < 0:
            raise ValueError(f"invalid file descriptor: {target}")
        return cls(StdioKind.FD, target)

    def to_subprocess(self) -> Any:
        """Value to pass as ``stdin``/``stdout``/``stderr`` to subprocess."""
        if self.kind is StdioKind.INHERIT:
            return None
        if self.kind is StdioKind.PIPED:
            return subprocess.PIPE
        if self.kind is StdioKind.NULL:
            return subprocess.DEVNULL
        return self.target

    def __repr__(self) -> str:
        if self.kind is StdioKind.FD:
            return f"Stdio.from_fd({self.target!r})"
        return f"Stdio.{self.kind.value}()"
