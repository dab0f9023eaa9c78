#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Sign-switching between Galois-conjugate embeddings.

A real number x that is an integer combination of the primal basis values is
recognised by an integer relation t with

    t_1 primal_1 + ... + t_m primal_m + t_{m+1} x = 0

and re-expanded in the dual basis:

    g(x) = -(t_1 dual_1 + ... + t_m dual_m) / t_{m+1}

If x is not faithfully an integer combination of the primal basis (too little
precision, or x genuinely outside the lattice) the result is unspecified. That
is the caller's responsibility; ``check_residual`` turns on an explicit check.

Values within rounding noise of zero, |x| <= 2^(-7 prec/8), map to 0. Values
above that but still under the detector tolerance 2^(-3 prec/4) cannot be told
apart from a small non-zero element (a small unit, say, whose conjugate is
large), so they raise the recoverable IntegerRelationFailure and the caller
retries at higher precision, where the tolerance drops below them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np

from sic_errors import ConfigurationError, IntegerRelationFailure

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BasisPair:
    """Embedded images of one integral basis under the identity and under g."""

    primal: Tuple
    dual: Tuple

    def __post_init__(self) -> None:
        if len(self.primal) != len(self.dual):
            raise ConfigurationError(
                f"primal and dual bases differ in length: {len(self.primal)} vs {len(self.dual)}"
            )
        if not self.primal:
            raise ConfigurationError("basis pair must be non-empty")

    @classmethod
    def from_sequences(cls, primal: Sequence, dual: Sequence) -> "BasisPair":
        return cls(tuple(primal), tuple(dual))


class BasisDualizer:
    """Map reals from the primal embedding to the dual embedding."""

    def __init__(self, pair: BasisPair, backend, *, check_residual: bool = False):
        self.pair = pair
        self.backend = backend
        self.check_residual = check_residual
        self.relations_found = 0

    def zero_threshold(self):
        """Magnitude at or below which x is rounding noise around an exact zero."""
        return self.backend.real(2) ** (-(7 * self.backend.precision) // 8)

    def dualize(self, x):
        backend = self.backend
        x = backend.real(x)
        tol = backend.relation_tolerance()
        if abs(x) <= self.zero_threshold():
            return backend.real(0)
        if abs(x) <= tol:
            raise IntegerRelationFailure(
                f"|x| = {abs(x)} is below the relation tolerance but not at rounding level",
                precision=backend.precision,
            )

        values = list(self.pair.primal) + [x]
        t = backend.integer_relation(values)
        if t is None:
            raise IntegerRelationFailure("no integer relation found", precision=backend.precision)
        if t[-1] == 0:
            raise IntegerRelationFailure(
                "integer relation does not involve x (primal basis is dependent)",
                precision=backend.precision,
            )
        if self.check_residual:
            residual = abs(backend.fsum(ti * vi for ti, vi in zip(t, values)))
            scale = max(abs(v) for v in values)
            if residual > tol * scale:
                raise IntegerRelationFailure(
                    f"relation residual {residual} exceeds tolerance", precision=backend.precision
                )

        self.relations_found += 1
        return -backend.fsum(d * ti for d, ti in zip(self.pair.dual, t[:-1])) / t[-1]

    def dualize_list(self, values: Sequence) -> list:
        return [self.dualize(v) for v in values]

    def dualize_array(self, values: np.ndarray) -> np.ndarray:
        out = np.empty(values.shape, dtype=object)
        for idx in np.ndindex(values.shape):
            out[idx] = self.dualize(values[idx])
        return out
