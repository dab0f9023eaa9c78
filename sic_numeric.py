#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Arbitrary-precision numeric backend.

Every arithmetic step of the necromancy pipeline goes through a backend object
instead of a process-wide precision setting. ``MpmathBackend`` owns a private
``mpmath`` context: values it creates carry that context, so changing the
precision of one solver invocation never affects another.

The backend also hosts the numeric primitives the pipeline consumes with a
documented contract:

  - polyroots(coeffs)           all complex roots, descending coefficients
  - integer_relation(values)    PSLQ (default) or exact LLL
  - solve(A, rhs)               dense LU solve in the working precision
  - power sums <-> elementary symmetric polynomials (Newton's identities)
"""

from __future__ import annotations

import contextlib
import logging
from typing import Iterator, List, Optional, Protocol, Sequence, Tuple

from mpmath.ctx_mp import MPContext

from sic_errors import ConfigurationError, DegenerateInvariant
from sic_lattice import integer_relation_lll

_logger = logging.getLogger(__name__)

RELATION_METHODS = ("pslq", "lll")


class NumericBackend(Protocol):
    """
    Interface the pipeline needs from an arbitrary-precision implementation.

    No pipeline module touches the underlying library directly; everything in
    sic_invariants, sic_dualize, sic_intersect, sic_weyl_heisenberg,
    sic_shift_search and sic_necromancy goes through these members.
    """

    precision_trace: List[Tuple[str, int]]

    # precision
    @property
    def precision(self) -> int: ...

    @property
    def eps(self): ...

    def set_precision(self, bits: int, label: str = "") -> None: ...

    def scoped_precision(self, bits: int): ...

    # conversion and elementary functions
    def real(self, x): ...

    def complex(self, x, imag=0): ...

    def rounded(self, z): ...

    def sqrt(self, x): ...

    def conj(self, z): ...

    def re(self, z): ...

    def im(self, z): ...

    def isfinite(self, x) -> bool: ...

    def nint(self, x) -> int: ...

    def fsum(self, terms): ...

    def expjpi(self, x): ...

    # linear algebra
    def solve(self, matrix: Sequence[Sequence], rhs: Sequence) -> List: ...

    def vandermonde(self, nodes: Sequence) -> List[List]: ...

    # polynomials
    def power_sums(self, values: Sequence, count: Optional[int] = None) -> List: ...

    def elementary_coefficients(self, power_sums: Sequence) -> List: ...

    def polyroots(self, coeffs: Sequence) -> List: ...

    def roots_from_elementary(self, coeffs: Sequence) -> List: ...

    def roots_from_power_sums(self, power_sums: Sequence) -> List: ...

    # integer relations
    def relation_tolerance(self): ...

    def integer_relation(self, values: Sequence) -> Optional[List[int]]: ...


class MpmathBackend:
    """
    mpmath implementation of NumericBackend.

    Parameters
    ----------
    precision : int
        Initial working precision in bits.
    relation_method : str
        "pslq" (mpmath.pslq) or "lll" (exact LLL from sic_lattice).
    relation_maxcoeff, relation_maxsteps : int, optional
        PSLQ search bounds. By default they scale with the working precision.
    rootfind_maxsteps : int
        Durand-Kerner iteration cap for polyroots.
    """

    def __init__(
        self,
        precision: int = 256,
        *,
        relation_method: str = "pslq",
        relation_maxcoeff: Optional[int] = None,
        relation_maxsteps: Optional[int] = None,
        rootfind_maxsteps: int = 200,
    ):
        if relation_method not in RELATION_METHODS:
            raise ConfigurationError(f"relation_method must be one of {RELATION_METHODS}, got {relation_method!r}")
        if precision < 53:
            raise ConfigurationError(f"precision must be at least 53 bits, got {precision}")
        self.ctx = MPContext()
        self.ctx.prec = int(precision)
        self.relation_method = relation_method
        self.relation_maxcoeff = relation_maxcoeff
        self.relation_maxsteps = relation_maxsteps
        self.rootfind_maxsteps = int(rootfind_maxsteps)
        self.precision_trace: List[Tuple[str, int]] = []

    # -------- precision --------

    @property
    def precision(self) -> int:
        return int(self.ctx.prec)

    def set_precision(self, bits: int, label: str = "") -> None:
        self.ctx.prec = int(bits)
        self.precision_trace.append((label, int(bits)))
        _logger.debug("precision -> %d bits (%s)", bits, label or "unlabelled")

    @contextlib.contextmanager
    def scoped_precision(self, bits: int) -> Iterator[None]:
        saved = self.ctx.prec
        self.ctx.prec = int(bits)
        try:
            yield
        finally:
            self.ctx.prec = saved

    @property
    def eps(self):
        return self.ctx.eps

    # -------- conversion and elementary functions --------

    def real(self, x):
        return self.ctx.mpf(x)

    def complex(self, x, imag=0):
        return self.ctx.mpc(x, imag)

    def rounded(self, z):
        """Round z to the current working precision."""
        return +self.ctx.convert(z)

    def sqrt(self, x):
        return self.ctx.sqrt(x)

    def conj(self, z):
        return self.ctx.conj(z)

    def re(self, z):
        return self.ctx.re(z)

    def im(self, z):
        return self.ctx.im(z)

    def isfinite(self, x) -> bool:
        return bool(self.ctx.isfinite(x))

    def nint(self, x) -> int:
        return int(self.ctx.nint(x))

    def fsum(self, terms):
        return self.ctx.fsum(terms)

    def expjpi(self, x):
        return self.ctx.expjpi(x)

    # -------- linear algebra --------

    def solve(self, matrix: Sequence[Sequence], rhs: Sequence) -> List:
        """Dense LU solve; a numerically singular matrix raises DegenerateInvariant."""
        A = self.ctx.matrix([list(row) for row in matrix])
        y = self.ctx.matrix(list(rhs))
        try:
            x = self.ctx.lu_solve(A, y)
        except ZeroDivisionError as ex:
            raise DegenerateInvariant(f"singular linear system: {ex}", precision=self.precision) from ex
        return [x[i] for i in range(x.rows)]

    @staticmethod
    def vandermonde(nodes: Sequence) -> List[List]:
        """V[t][k] = nodes[t]**k for k = 0..len(nodes)-1."""
        size = len(nodes)
        return [[node ** k for k in range(size)] for node in nodes]

    def vandermonde_solve(self, nodes: Sequence, rhs: Sequence) -> List:
        return self.solve(self.vandermonde(nodes), rhs)

    # -------- polynomials --------

    @staticmethod
    def power_sums(values: Sequence, count: Optional[int] = None) -> List:
        """p_k = sum_t values[t]**k for k = 1..count (default len(values))."""
        count = len(values) if count is None else count
        return [sum(v ** k for v in values) for k in range(1, count + 1)]

    def elementary_coefficients(self, power_sums: Sequence) -> List:
        """
        Newton's identities: from p_1..p_m build [1, e_1, ..., e_m].

        Read as descending coefficients this is prod(x + rho_i), whose roots are
        the negated quantities rho_i behind the power sums.
        """
        e = [self.ctx.mpf(1)]
        for k in range(1, len(power_sums) + 1):
            acc = 0
            for i in range(1, k + 1):
                term = e[k - i] * power_sums[i - 1]
                acc = acc + term if i % 2 else acc - term
            e.append(acc / k)
        return e

    def polyroots(self, coeffs: Sequence) -> List:
        """All roots of sum coeffs[i] x^(m-i) as complex numbers."""
        coeffs = list(coeffs)[::-1]
        if len(coeffs) < 2:
            return []
        try:
            roots = self.ctx.polyroots(
                coeffs,
                maxsteps=self.rootfind_maxsteps,
                extraprec=self.precision,
                asc=True,
            )
        except self.ctx.NoConvergence as ex:
            raise DegenerateInvariant(f"polynomial roots did not converge: {ex}", precision=self.precision) from ex
        return [self.ctx.mpc(r) for r in roots]

    def roots_from_elementary(self, coeffs: Sequence) -> List:
        """Negated roots of the elementary-symmetric polynomial: the rho_i themselves."""
        return [-r for r in self.polyroots(coeffs)]

    def roots_from_power_sums(self, power_sums: Sequence) -> List:
        return self.roots_from_elementary(self.elementary_coefficients(power_sums))

    # -------- integer relations --------

    def relation_tolerance(self):
        return self.ctx.mpf(2) ** (-(3 * self.precision) // 4)

    def integer_relation(self, values: Sequence) -> Optional[List[int]]:
        """
        Integer vector t with sum t_i values_i ~ 0, or None if none is found.

        All values must be nonzero; callers handle exact zeros themselves.
        """
        values = [self.ctx.mpf(v) for v in values]
        if self.relation_method == "lll":
            return integer_relation_lll(values, self.ctx, tolerance=self.relation_tolerance())
        maxcoeff = self.relation_maxcoeff or 2 ** max(self.precision // 4, 10)
        maxsteps = self.relation_maxsteps or 100 * max(self.precision, 100)
        relation = self.ctx.pslq(values, maxcoeff=maxcoeff, maxsteps=maxsteps)
        if relation is None:
            return None
        return [int(t) for t in relation]
