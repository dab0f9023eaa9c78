#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Ghost invariants from an array of ghost overlaps.

K is a real array with one axis per Galois orbit factor. For every factor j the
invariants are:

  - a[j]  (ords[j] x n/ords[j])  Vandermonde coordinates of the reduced powers
  - b[j]  (ords[j])              companion relation c[t] -> c[t+1]
  - s[j]  (ords[j])              power sums of the generic vector c

where c = sum(K**l_j) over all axes except j, and l_j is the smallest exponent
for which c is generic (distinct, nonzero, resolvable at working precision).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple

import numpy as np

from sic_errors import DegenerateInvariant

_logger = logging.getLogger(__name__)

# Bits of headroom demanded above the working precision for genericity.
GENERICITY_BITS = 10


@dataclass
class GhostInvariants:
    a: List[np.ndarray] = field(default_factory=list)
    b: List[List] = field(default_factory=list)
    s: List[List] = field(default_factory=list)
    exponents: List[int] = field(default_factory=list)

    def __iter__(self):
        return iter((self.a, self.b, self.s))


def reduced_power(K: np.ndarray, j: int, l: int) -> np.ndarray:
    """sum(K**l) over every axis except j."""
    notj = tuple(i for i in range(K.ndim) if i != j)
    powered = K ** l
    if not notj:
        return powered
    return np.sum(powered, axis=notj)


def is_generic(c: Sequence, threshold) -> bool:
    ordered = sorted(c)
    gaps = [hi - lo for lo, hi in zip(ordered, ordered[1:])]
    return all(abs(v) > threshold for v in gaps + list(c))


def generic_exponent(K: np.ndarray, j: int, backend) -> Tuple[int, np.ndarray]:
    """First l in 1..n/ords[j] whose reduction along j is generic."""
    ords = K.shape
    bound = K.size // ords[j]
    threshold = backend.real(2) ** (GENERICITY_BITS - backend.precision)
    for l in range(1, bound + 1):
        c = reduced_power(K, j, l)
        if is_generic(c, threshold):
            return l, c
    raise DegenerateInvariant(
        f"no generic exponent for orbit factor {j} up to l={bound}",
        precision=backend.precision,
    )


def ghost_invariants(K: np.ndarray, backend) -> GhostInvariants:
    """
    Compute the ghost invariants (a, b, s) of the ghost overlap array K.

    All arithmetic happens at the backend's current precision. Raises
    DegenerateInvariant when some factor has no generic exponent or a
    Vandermonde system is singular.
    """
    ords = K.shape
    n = K.size
    out = GhostInvariants()

    for j, order in enumerate(ords):
        l_j, c = generic_exponent(K, j, backend)
        V = backend.vandermonde(list(c))

        out.exponents.append(l_j)
        out.b.append(backend.solve(V, list(np.roll(c, -1))))
        out.s.append(backend.power_sums(list(c), order))

        width = n // order
        a_j = np.empty((order, width), dtype=object)
        for l in range(1, width + 1):
            a_j[:, l - 1] = backend.solve(V, list(reduced_power(K, j, l)))
        out.a.append(a_j)

        _logger.debug("orbit factor %d: order=%d, l_j=%d, width=%d", j, order, l_j, width)

    return out
