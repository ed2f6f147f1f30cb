"""Stdio configuration tests."""

from __future__ import annotations

import subprocess

import pytest

from proclaunch.stdio import Stdio, StdioKind


class TestConstructors:
    """Test Stdio constructors and subprocess mapping."""

    def test_inherit(self):
        cfg = Stdio.inherit()
        assert cfg.kind is StdioKind.INHERIT
        assert cfg.to_subprocess() is None

    def test_piped(self):
        assert Stdio.piped().to_subprocess() == subprocess.PIPE

    def test_null(self):
        assert Stdio.null().to_subprocess() == subprocess.DEVNULL

    def test_from_fd_int(self):
        cfg = Stdio.from_fd(2)
        assert cfg.kind is StdioKind.FD
        assert cfg.to_subprocess() == 2

    def test_from_file_object(self, tmp_path):
        with open(tmp_path / "out.txt", "wb") as f:
            cfg = Stdio.from_fd(f)
            assert cfg.to_subprocess() is f

    def test_from_fd_negative(self):
        with pytest.raises(ValueError):
            Stdio.from_fd(-1)

    def test_from_fd_wrong_type(self):
        with pytest.raises(TypeError):
            Stdio.from_fd("stdout")  # type: ignore[arg-type]

    def test_fd_kind_needs_target(self):
        with pytest.raises(ValueError):
            Stdio(StdioKind.FD)

    def test_non_fd_kind_rejects_target(self):
        with pytest.raises(ValueError):
            Stdio(StdioKind.PIPED, 3)


class TestValueSemantics:
    """Test equality and immutability."""

    def test_equality(self):
        assert Stdio.piped() == Stdio.piped()
        assert Stdio.piped() != Stdio.null()
        assert Stdio.from_fd(1) == Stdio.from_fd(1)

    def test_frozen(self):
        cfg = Stdio.null()
        with pytest.raises(AttributeError):
            cfg.kind = StdioKind.PIPED  # type: ignore[misc]

    def test_repr(self):
        assert repr(Stdio.piped()) == "Stdio.piped()"
        assert repr(Stdio.from_fd(2)) == "Stdio.from_fd(2)"
