"""Tests for the centralized exception hierarchy."""

import pytest

import meshguard
from meshguard.exceptions import (
    ChildUnavailableError,
    ConfigurationError,
    MeshGuardError,
    PolicyViolationError,
    ProtocolDecodeError,
)


class TestExceptionHierarchy:
    """Verify the exception class hierarchy is correct."""

    def test_base_exception_exists(self):
        assert issubclass(MeshGuardError, Exception)

    @pytest.mark.parametrize(
        "exc_cls",
        [
            ConfigurationError,
            PolicyViolationError,
            ProtocolDecodeError,
            ChildUnavailableError,
        ],
    )
    def test_direct_subclasses_of_meshguard_error(self, exc_cls):
        assert issubclass(exc_cls, MeshGuardError)
        assert exc_cls.__bases__ == (MeshGuardError,)

    def test_exported_from_package_root(self):
        for name in meshguard.exceptions.__all__:
            assert getattr(meshguard, name) is getattr(meshguard.exceptions, name)


class TestExceptionDetails:
    def test_policy_violation_reads_not_found(self):
        exc = PolicyViolationError("resource", "secret.env")
        assert str(exc) == "resource not found: secret.env"
        assert exc.entity_type == "resource"
        assert exc.name == "secret.env"
        assert "forbidden" not in str(exc).lower()

    def test_decode_error_keeps_source(self):
        exc = ProtocolDecodeError("bad", source="child", raw=b"x\n")
        assert exc.source == "child"
        assert exc.raw == b"x\n"

    def test_catchable_as_base(self):
        with pytest.raises(MeshGuardError):
            raise ChildUnavailableError("gone")
