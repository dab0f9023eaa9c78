#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Weyl-Heisenberg group action and the SIC field collaborator interface.

Displacement operators in dimension d are indexed by p in [0, d^2) with
(p1, p2) = divmod(p, d):

    D_p = tau^(p1 p2) X^p1 Z^p2,   tau = -exp(i pi / d)
    (X psi)_k = psi_{k-1},  (Z psi)_k = omega^k psi_k,  omega = tau^2

so (D_p psi)_k = tau^(p1 p2) omega^(p2 (k - p1)) psi_{k - p1}.

A fiducial psi is a SIC fiducial when |<psi, D_p psi>|^2 = 1/(d+1) for every
p != 0 (with <psi, psi> = 1).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Hashable, List, Sequence, Tuple

import numpy as np


# =============================================================================
# Mixed radix and cyclic shifts
# =============================================================================


def radix(k: int, ords: Sequence[int]) -> Tuple[int, ...]:
    """Mixed-radix digits of k over ``ords``; the first digit varies fastest."""
    if not 0 <= k < int(np.prod(ords)):
        raise ValueError(f"k={k} out of range for orders {tuple(ords)}")
    digits = []
    for order in ords:
        k, digit = divmod(k, order)
        digits.append(digit)
    return tuple(digits)


def circshift(x: np.ndarray, shifts: Sequence[int]) -> np.ndarray:
    return np.roll(x, tuple(shifts), axis=tuple(range(x.ndim)))


# =============================================================================
# Displacement operators and overlaps
# =============================================================================


def _dot(phi: Sequence, psi: Sequence, backend):
    return backend.fsum(backend.conj(a) * b for a, b in zip(phi, psi))


def displace(p: int, psi: Sequence, backend) -> List:
    """D_p psi in the working precision of ``backend``."""
    d = len(psi)
    p1, p2 = divmod(int(p) % (d * d), d)
    tau = -backend.expjpi(backend.real(1) / d)
    phase = tau ** (p1 * p2)
    out = []
    for k in range(d):
        src = (k - p1) % d
        # omega^(p2 * src) = tau^(2 p2 src); exponent reduced mod 2d
        out.append(phase * tau ** ((2 * p2 * src) % (2 * d)) * psi[src])
    return out


def overlap(p: int, psi: Sequence, phi: Sequence, backend):
    """phi' D_p psi."""
    return _dot(phi, displace(p, psi, backend), backend)


def sic_overlap_test(psi: Sequence, backend):
    """Largest deviation of |<psi, D_p psi>|^2 / <psi, psi>^2 from 1/(d+1), p != 0."""
    d = len(psi)
    norm2 = backend.re(_dot(psi, psi, backend))
    target = backend.real(1) / (d + 1)
    worst = backend.real(0)
    for p in range(1, d * d):
        dev = abs(abs(overlap(p, psi, psi, backend)) ** 2 / norm2 ** 2 - target)
        worst = max(worst, dev)
    return worst


def re_im_proj(psi: Sequence, backend) -> List:
    """Complex length-d vector -> real length-2d vector [re..., im...]."""
    return [backend.re(x) for x in psi] + [backend.im(x) for x in psi]


def re_im_unproj(z: Sequence, backend) -> List:
    half = len(z) // 2
    return [backend.complex(z[k], z[k + half]) for k in range(half)]


def sic_overlap_residual(z: Sequence, backend):
    """Sum of squared overlap deviations of the complex vector encoded by z."""
    psi = re_im_unproj(z, backend)
    d = len(psi)
    norm2 = backend.re(_dot(psi, psi, backend))
    target = backend.real(1) / (d + 1)
    return backend.fsum(
        (abs(overlap(p, psi, psi, backend)) ** 2 / norm2 ** 2 - target) ** 2 for p in range(1, d * d)
    )


# =============================================================================
# Collaborator interface
# =============================================================================


class SicField(ABC):
    """
    External algebraic data of one SIC problem.

    Subclasses provide the number-field side (orbit structure, embedded bases),
    the seed, matrix completion and the final Newton polish. The group action
    defaults to the Weyl-Heisenberg overlaps above.
    """

    def __init__(self, d: int, key: Hashable = None):
        if d < 2:
            raise ValueError(f"dimension must be at least 2, got {d}")
        self._d = int(d)
        self._key = key if key is not None else int(d)

    @property
    def d(self) -> int:
        return self._d

    @property
    def key(self) -> Hashable:
        """Lookup key for per-field configuration such as precision overrides."""
        return self._key

    @abstractmethod
    def seed(self, backend) -> List:
        """Low-precision ghost fiducial."""

    @abstractmethod
    def galois_orbit(self) -> Tuple[Tuple[int, ...], np.ndarray]:
        """(ords, porb): factor orders and an array of shape ords of overlap indices."""

    @abstractmethod
    def basis_pair(self, backend):
        """BasisPair of the embedded LLL-reduced basis and its Galois conjugate."""

    @abstractmethod
    def matrix_completion(self, phases: np.ndarray, backend) -> List:
        """Candidate fiducial vector from a phase array."""

    @abstractmethod
    def polish(self, z: List, digits: int, score: Callable, base: int, backend) -> List:
        """Newton-style refinement of z until ``score`` is correct to ``digits``."""

    def raise_precision(self, psi: Sequence, bits: int, backend) -> List:
        """Value-preserving lift of psi to the backend's precision."""
        return [backend.complex(x) for x in psi]

    def overlap(self, p, psi: Sequence, phi: Sequence, backend):
        return overlap(p, psi, phi, backend)

    def overlap_quality(self, psi: Sequence, backend):
        return sic_overlap_test(psi, backend)
