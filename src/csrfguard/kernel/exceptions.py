"""Unified exception hierarchy for CSRFGuard.

All library exceptions inherit from CsrfGuardException, enabling unified
error handling across modules.

Categories:
- ConfigurationException: fatal startup errors, never downgraded
- InfrastructureException: token store and other backing-service failures
- ActionException: a violation action could not complete

Per-request validation failures are not exceptions; they are returned as
:class:`~csrfguard.validation.verdict.Verdict` values.
"""

from __future__ import annotations


# =============================================================================
# Base Exception
# =============================================================================


class CsrfGuardException(Exception):
    """Base exception for all CSRFGuard errors.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "CONFIG_001").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.context: dict = context if context is not None else {}


# =============================================================================
# Configuration Exceptions
# =============================================================================


class ConfigurationException(CsrfGuardException):
    """Invalid or incomplete configuration detected at startup."""


# =============================================================================
# Infrastructure Exceptions
# =============================================================================


class InfrastructureException(CsrfGuardException):
    """Infrastructure failures: token store, cache, network."""


class TokenStoreException(InfrastructureException):
    """The token store could not be read or written.

    Distinct from a token mismatch: the caller could not determine whether
    the presented token was valid.
    """


# =============================================================================
# Action Exceptions
# =============================================================================


class ActionException(CsrfGuardException):
    """A violation action failed while executing."""
