"""Typed errors raised by the validating boundary.

The per-point kernels never raise; every check happens once per chunk before
any work is dispatched.
"""

from __future__ import annotations


class KernelInputError(ValueError):
    """Base class for rejected kernel inputs."""


class UserInfoError(KernelInputError):
    """The user-info buffer does not match any supported layout."""


class ParameterError(KernelInputError):
    """Parameter array has the wrong shape or is outside the model domain."""


class OutputShapeError(KernelInputError):
    """An output array cannot hold the values/derivatives of a chunk."""
