#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Approximate intersection of complex sets.

Values computed along independent paths agree only up to rounding. Both sets
are scaled by base**prec and rounded coordinatewise to the Gaussian integer
lattice; the intersection is exact on lattice points, and survivors are scaled
back. Output is sorted by lattice point so the result does not depend on
argument order.
"""

from __future__ import annotations

from functools import reduce
from typing import Dict, Iterable, List, Sequence, Tuple

from sic_numeric import MpmathBackend

DEFAULT_PREC = 256
DEFAULT_BASE = 2

# Working precision of the backend built when the caller supplies none.
FALLBACK_PRECISION = 320


def _lattice_points(values: Iterable, scale: int, backend) -> Dict[Tuple[int, int], object]:
    points: Dict[Tuple[int, int], object] = {}
    for z in values:
        z = backend.complex(z)
        key = (backend.nint(backend.re(z) * scale), backend.nint(backend.im(z) * scale))
        points.setdefault(key, z)
    return points


def approx_complex_intersection(
    A: Sequence,
    B: Sequence,
    *,
    prec: int = DEFAULT_PREC,
    base: int = DEFAULT_BASE,
    backend=None,
) -> List:
    """Elements of A and B that coincide after rounding at ``prec`` base-``base`` digits."""
    if backend is None:
        backend = MpmathBackend(FALLBACK_PRECISION)
    scale = int(base) ** int(prec)
    keys = sorted(set(_lattice_points(A, scale, backend)) & set(_lattice_points(B, scale, backend)))
    return [backend.complex(backend.real(re) / scale, backend.real(im) / scale) for re, im in keys]


def intersect_all(sets: Sequence[Sequence], *, prec: int = DEFAULT_PREC, base: int = DEFAULT_BASE, backend=None) -> List:
    """Pairwise reduction of approx_complex_intersection over all sets."""
    if backend is None:
        backend = MpmathBackend(FALLBACK_PRECISION)
    if not sets:
        return []
    if len(sets) == 1:
        return approx_complex_intersection(sets[0], sets[0], prec=prec, base=base, backend=backend)
    return reduce(
        lambda x, y: approx_complex_intersection(x, y, prec=prec, base=base, backend=backend),
        sets,
    )
