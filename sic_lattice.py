#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Exact lattice reduction and LLL-based integer relation detection.

The relation detector is the alternative to PSLQ in the numeric backend. Given
high-precision reals x_1..x_n, it reduces the embedding lattice

    b_i = (e_i, round(2^k * x_i))

and reads a candidate relation off the first n coordinates of short reduced
rows. A candidate is only returned if its residual |sum t_i x_i| passes the
detector tolerance, so a returned relation is never a silent guess.

Red-lines:
  - Deterministic: no randomness.
  - Gram-Schmidt is exact (Fraction), so large integer entries never overflow
    a float mantissa.
  - Invalid input is a hard failure (LatticeReductionError).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sic_errors import LatticeReductionError

_logger = logging.getLogger(__name__)


@dataclass
class LLLResult:
    success: bool
    reduced_basis: List[List[int]] = field(default_factory=list)
    total_elapsed_ms: float = 0.0
    diagnostics: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


def _dot(a: Sequence, b: Sequence):
    return sum(x * y for x, y in zip(a, b))


def gram_schmidt(basis: List[List[int]]) -> Tuple[List[List[Fraction]], List[Fraction]]:
    """
    Exact Gram-Schmidt on a row basis.

    Returns (mu, B) where mu[i][j] = <b_i, b*_j> / <b*_j, b*_j> and
    B[i] = ||b*_i||^2.
    """
    if not basis:
        raise LatticeReductionError("Empty basis.")
    m = len(basis[0])
    if m == 0:
        raise LatticeReductionError("Basis vectors have zero dimension.")
    if any(len(row) != m for row in basis):
        raise LatticeReductionError("Basis row dimension mismatch.")

    n = len(basis)
    mu: List[List[Fraction]] = [[Fraction(0)] * n for _ in range(n)]
    b_star: List[List[Fraction]] = []
    B: List[Fraction] = [Fraction(0)] * n

    for i in range(n):
        v = [Fraction(x) for x in basis[i]]
        for j in range(i):
            mu[i][j] = _dot(basis[i], b_star[j]) / B[j]
            v = [vk - mu[i][j] * bk for vk, bk in zip(v, b_star[j])]
        b_star.append(v)
        B[i] = _dot(v, v)
        if B[i] == 0:
            raise LatticeReductionError(f"GS produced zero vector at row {i} (dependent basis).")

    return mu, B


def lll_reduce(basis: List[List[int]], *, delta: Fraction = Fraction(3, 4)) -> LLLResult:
    """
    LLL reduction of an integer row basis.

    delta in (1/4, 1) is the Lovasz parameter; 3/4 is the canonical choice.
    """
    t0 = time.perf_counter()
    delta = Fraction(delta)
    diag: Dict[str, Any] = {"delta": str(delta), "swaps": 0, "size_reductions": 0}

    if not (Fraction(1, 4) < delta < 1):
        raise ValueError(f"LLL delta must satisfy 1/4 < delta < 1, got {delta}")
    if not basis:
        return LLLResult(success=False, diagnostics=diag, error="empty basis")
    if any(not isinstance(x, int) for row in basis for x in row):
        raise LatticeReductionError("basis must be integers (no floats)")

    B_rows = [list(row) for row in basis]
    n = len(B_rows)
    mu, B = gram_schmidt(B_rows)

    k = 1
    while k < n:
        for j in range(k - 1, -1, -1):
            if abs(mu[k][j]) > Fraction(1, 2):
                q = round(mu[k][j])
                B_rows[k] = [bk - q * bj for bk, bj in zip(B_rows[k], B_rows[j])]
                mu, B = gram_schmidt(B_rows)
                diag["size_reductions"] += 1

        if B[k] >= (delta - mu[k][k - 1] ** 2) * B[k - 1]:
            k += 1
        else:
            B_rows[k], B_rows[k - 1] = B_rows[k - 1], B_rows[k]
            mu, B = gram_schmidt(B_rows)
            diag["swaps"] += 1
            k = max(k - 1, 1)

    elapsed_ms = (time.perf_counter() - t0) * 1000.0
    diag["elapsed_ms"] = elapsed_ms
    return LLLResult(success=True, reduced_basis=B_rows, total_elapsed_ms=elapsed_ms, diagnostics=diag)


def integer_relation_lll(values: Sequence, ctx, *, tolerance=None) -> Optional[List[int]]:
    """
    Detect an integer relation among reals of the mpmath context ``ctx``.

    The scale exponent and the default tolerance 2^(-3/4 * prec) are derived
    from the context precision. Returns None when no reduced row passes the
    residual check.
    """
    n = len(values)
    if n < 2:
        raise ValueError("integer relation needs at least two values")
    precision_bits = int(ctx.prec)
    scale_bits = max(precision_bits - 8, 16)
    if tolerance is None:
        tolerance = ctx.mpf(2) ** (-(3 * precision_bits) // 4)
    scale = ctx.mpf(2) ** scale_bits
    embedded = [int(ctx.nint(v * scale)) for v in values]

    lattice = [[1 if i == j else 0 for j in range(n)] + [embedded[i]] for i in range(n)]
    result = lll_reduce(lattice)
    if not result.success:
        return None

    norm = max(abs(v) for v in values)
    for row in sorted(result.reduced_basis, key=lambda r: _dot(r[:n], r[:n])):
        t = row[:n]
        if not any(t):
            continue
        residual = abs(ctx.fsum(ti * vi for ti, vi in zip(t, values)))
        if residual <= tolerance * max(norm, 1):
            _logger.debug("integer_relation_lll: n=%d, max|t|=%d", n, max(abs(x) for x in t))
            return t
    return None
