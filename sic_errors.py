#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Error taxonomy for ghost necromancy.

Every failure raised by the pipeline derives from NecromancyError and carries
a ``recoverable`` flag:

  - recoverable: the precision-adaptive driver discards the iteration and
    doubles the working precision. These are never surfaced to callers unless
    the retries exhaust ``max_prec``.
  - fatal: propagated to the caller unchanged.
"""

from __future__ import annotations

from typing import Optional


class NecromancyError(RuntimeError):
    """Base class for all pipeline failures."""

    recoverable: bool = False

    def __init__(self, message: str, *, precision: Optional[int] = None):
        super().__init__(message)
        self.precision = precision


# =============================================================================
# Recoverable: discard iteration, double precision
# =============================================================================


class DegenerateInvariant(NecromancyError):
    """Genericity search failed, or a Vandermonde / root solve hit a singular pivot."""

    recoverable = True


class IntegerRelationFailure(DegenerateInvariant):
    """Relation detector found nothing, or the relation does not involve x."""


class NonFiniteInvariant(NecromancyError):
    """A dualized invariant is NaN or infinite."""

    recoverable = True


class AmbiguousIntersection(NecromancyError):
    """Rounded intersection of candidate slices is not a singleton."""

    recoverable = True

    def __init__(self, message: str, *, index=None, size: int = 0, precision: Optional[int] = None):
        super().__init__(message, precision=precision)
        self.index = index
        self.size = size


class PhaseValidationFailure(NecromancyError):
    """An accepted phase array entry is not of unit modulus."""

    recoverable = True


# =============================================================================
# Fatal
# =============================================================================


class PrecisionExhausted(NecromancyError):
    """Target precision exceeded max_prec without convergence."""


class ShiftSearchExhausted(NecromancyError):
    """No Galois shift of the phase array completes to an acceptable fiducial."""


class ConfigurationError(NecromancyError, ValueError):
    """Invalid solver or backend configuration."""


class LatticeReductionError(NecromancyError):
    """LLL reduction failed (empty basis, dimension mismatch, dependent rows)."""
