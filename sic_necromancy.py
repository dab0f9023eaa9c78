#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Precision-adaptive reconstruction of a SIC fiducial from its ghost.

Pipeline (one iteration at target precision prec):

  SEEDING               lift the ghost psi to prec, build phi, ghost overlaps K
  EXTRACTING_INVARIANTS ghost invariants (a, b, s) of K
  DUALIZING             sign-switch a, b, s into the SIC embedding
  ROOT_FINDING          roots theta, companion orbit theta', conjugate matrices L
  INTERSECTING          common element of the r candidate slices per multi-index
  VALIDATING            every phase has unit modulus

Any recoverable failure discards the iteration and doubles prec; exceeding
max_prec is fatal (PrecisionExhausted). On convergence the Galois shift search
turns the phase array into a fiducial vector.

Precision is owned by the backend of one invocation. It is changed only at
labelled points ("seed", "working", "buffer", "stable") and is always left at
the stable precision when the solver returns or raises.
"""

from __future__ import annotations

import contextlib
import logging
import time
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Hashable, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from sic_dualize import BasisDualizer
from sic_errors import (
    AmbiguousIntersection,
    ConfigurationError,
    DegenerateInvariant,
    NecromancyError,
    NonFiniteInvariant,
    PhaseValidationFailure,
    PrecisionExhausted,
)
from sic_intersect import intersect_all
from sic_invariants import GhostInvariants, ghost_invariants
from sic_numeric import MpmathBackend
from sic_shift_search import GaloisShiftSearch
from sic_weyl_heisenberg import SicField, radix

_logger = logging.getLogger(__name__)

MIN_MAX_PREC = 128


class SolverState(Enum):
    SEEDING = auto()
    EXTRACTING_INVARIANTS = auto()
    DUALIZING = auto()
    ROOT_FINDING = auto()
    INTERSECTING = auto()
    VALIDATING = auto()
    CONVERGED = auto()
    EXHAUSTED = auto()


@dataclass(frozen=True)
class SolverConfig:
    """
    Parameters of one necromancy run.

    precision_overrides maps SicField.key to a fixed working precision used in
    place of the doubling target when lifting the ghost (small dimensions
    overshoot at the default targets). The target itself still doubles, so
    max_prec always bounds the loop.
    """

    initial_precision: int = 128
    max_prec: int = 2 ** 23
    buffer_precision: int = 320
    stable_precision: int = 256
    intersection_precision: int = 256
    base: int = 2
    overlap_precision_max_tol: float = 1e-6
    overlap_target_prec: int = 30
    phase_tolerance: Optional[float] = None
    precision_overrides: Mapping[Hashable, int] = field(default_factory=dict)
    check_dualization_residual: bool = False

    def __post_init__(self) -> None:
        if self.max_prec < MIN_MAX_PREC:
            raise ConfigurationError(f"max_prec should be at least {MIN_MAX_PREC} bits, got {self.max_prec}")
        for name in ("initial_precision", "buffer_precision", "stable_precision"):
            if getattr(self, name) < 53:
                raise ConfigurationError(f"{name} must be at least 53 bits, got {getattr(self, name)}")
        if self.intersection_precision <= 0:
            raise ConfigurationError(f"intersection_precision must be positive, got {self.intersection_precision}")
        if self.base < 2:
            raise ConfigurationError(f"base must be >= 2, got {self.base}")
        if self.overlap_precision_max_tol <= 0:
            raise ConfigurationError("overlap_precision_max_tol must be positive")
        if self.overlap_target_prec <= 0:
            raise ConfigurationError("overlap_target_prec must be positive")
        if self.phase_tolerance is not None and self.phase_tolerance <= 0:
            raise ConfigurationError("phase_tolerance must be positive")
        for key, bits in self.precision_overrides.items():
            if bits < 53:
                raise ConfigurationError(f"precision override for {key!r} must be at least 53 bits, got {bits}")


@dataclass
class IterationRecord:
    target_precision: int
    working_precision: int
    state: SolverState = SolverState.SEEDING
    outcome: str = "pending"
    message: str = ""
    timings_ms: Dict[str, float] = field(default_factory=dict)


@dataclass
class PhaseSolution:
    phases: np.ndarray
    ords: Tuple[int, ...]
    precision: int
    iterations: List[IterationRecord] = field(default_factory=list)
    precision_trace: List[Tuple[str, int]] = field(default_factory=list)
    exponents: List[int] = field(default_factory=list)


@dataclass
class NecromancyResult:
    fiducial: List
    shift: Tuple[int, ...]
    score: Any
    solution: PhaseSolution
    diagnostics: Dict[str, Any] = field(default_factory=dict)


class PrecisionAdaptiveSolver:
    """Precision-doubling driver producing the SIC overlap phase array."""

    def __init__(self, sic_field: SicField, config: Optional[SolverConfig] = None, backend=None):
        self.field = sic_field
        self.config = config if config is not None else SolverConfig()
        self.backend = backend if backend is not None else MpmathBackend(self.config.stable_precision)
        self.state = SolverState.SEEDING
        self._record: Optional[IterationRecord] = None
        self.iterations: List[IterationRecord] = []

    # -------- bookkeeping --------

    @contextlib.contextmanager
    def _stage(self, state: SolverState) -> Iterator[None]:
        self.state = state
        if self._record is not None:
            self._record.state = state
        t0 = time.perf_counter()
        try:
            yield
        finally:
            elapsed = (time.perf_counter() - t0) * 1000.0
            if self._record is not None:
                key = state.name.lower()
                self._record.timings_ms[key] = self._record.timings_ms.get(key, 0.0) + elapsed
            _logger.debug("%s: %.1f ms", state.name, elapsed)

    # -------- main loop --------

    def solve(self) -> PhaseSolution:
        cfg = self.config
        backend = self.backend
        if cfg.max_prec < MIN_MAX_PREC:
            raise ConfigurationError(f"max_prec should be at least {MIN_MAX_PREC} bits.")

        ords, porb = self.field.galois_orbit()
        ords = tuple(int(o) for o in ords)
        porb = np.asarray(porb)
        if porb.size != int(np.prod(ords)):
            raise ConfigurationError(f"orbit has {porb.size} elements, expected {int(np.prod(ords))} for orders {ords}")
        porb = porb.reshape(ords)

        trace_start = len(backend.precision_trace)
        iterations: List[IterationRecord] = []
        self.iterations = iterations
        try:
            backend.set_precision(cfg.initial_precision, "seed")
            _logger.info("Computing the ghost.")
            with self._stage(SolverState.SEEDING):
                psi = self.field.seed(backend)

            prec = cfg.initial_precision
            while prec <= cfg.max_prec:
                working = int(cfg.precision_overrides.get(self.field.key, prec))
                record = IterationRecord(target_precision=prec, working_precision=working)
                self._record = record
                iterations.append(record)
                _logger.info("target precision >= %d bits", prec)

                try:
                    with self._stage(SolverState.SEEDING):
                        backend.set_precision(working, "working")
                        psi = self.field.raise_precision(psi, working, backend)
                    phases, inv = self._iterate(psi, ords, porb)
                except NecromancyError as ex:
                    if not ex.recoverable:
                        raise
                    record.outcome = type(ex).__name__
                    record.message = str(ex)
                    _logger.info("%s at %d bits: %s. Doubling precision.", record.outcome, prec, ex)
                else:
                    self.state = record.state = SolverState.CONVERGED
                    record.outcome = "converged"
                    _logger.info("All SIC overlaps are phases at %d bits.", prec)
                    return PhaseSolution(
                        phases=phases,
                        ords=ords,
                        precision=prec,
                        iterations=iterations,
                        precision_trace=list(backend.precision_trace[trace_start:]),
                        exponents=list(inv.exponents),
                    )
                prec *= 2

            self.state = SolverState.EXHAUSTED
            raise PrecisionExhausted("max_prec exceeded without convergence.", precision=prec)
        finally:
            self._record = None
            if backend.precision != cfg.stable_precision:
                backend.set_precision(cfg.stable_precision, "stable")

    def _iterate(self, psi: Sequence, ords: Tuple[int, ...], porb: np.ndarray) -> Tuple[np.ndarray, GhostInvariants]:
        cfg = self.config
        backend = self.backend
        d = self.field.d

        with self._stage(SolverState.SEEDING):
            K = self.ghost_overlaps(psi, ords, porb)

        with self._stage(SolverState.EXTRACTING_INVARIANTS):
            inv = ghost_invariants(K, backend)

        with self._stage(SolverState.DUALIZING):
            a, b, s = self.dualize(inv)
            # from here on everything lives in the SIC embedding
            backend.set_precision(cfg.buffer_precision, "buffer")
            if not all(backend.isfinite(v) for v in _flatten(a, b, s)):
                raise NonFiniteInvariant("some dualized invariants are not finite", precision=backend.precision)

        with self._stage(SolverState.ROOT_FINDING):
            L = self.conjugate_matrices(a, b, s, ords, d)

        with self._stage(SolverState.INTERSECTING):
            x = self.intersect(L, ords)

        with self._stage(SolverState.VALIDATING):
            x = self.validate(x)

        return x, inv

    # -------- stages --------

    def ghost_overlaps(self, psi: Sequence, ords: Tuple[int, ...], porb: np.ndarray) -> np.ndarray:
        """Real parts of phi' D_p psi over the orbit, phi = shift(reverse(psi)) scaled so phi' psi = d+1."""
        backend = self.backend
        d = self.field.d
        rev = list(psi)[::-1]
        phi = rev[-1:] + rev[:-1]
        pairing = backend.fsum(backend.conj(u) * v for u, v in zip(phi, psi))
        if pairing == 0:
            raise DegenerateInvariant("ghost pairing phi' psi vanishes", precision=backend.precision)
        phi = [u * (d + 1) / backend.conj(pairing) for u in phi]

        K = np.empty(ords, dtype=object)
        for idx in np.ndindex(*ords):
            K[idx] = backend.re(self.field.overlap(porb[idx], psi, phi, backend))
        return K

    def dualize(self, inv: GhostInvariants):
        backend = self.backend
        dualizer = BasisDualizer(
            self.field.basis_pair(backend),
            backend,
            check_residual=self.config.check_dualization_residual,
        )
        ghost_a, ghost_b, ghost_s = inv
        a = [dualizer.dualize_array(a_j) for a_j in ghost_a]
        b = [dualizer.dualize_list(b_j) for b_j in ghost_b]
        s = [backend.elementary_coefficients(dualizer.dualize_list(s_j)) for s_j in ghost_s]
        _logger.debug("dualized %d invariants", dualizer.relations_found)
        return a, b, s

    def conjugate_matrices(self, a, b, s, ords: Tuple[int, ...], d: int) -> List[List[List]]:
        """
        L[j][t] = roots of the power sums in row t of V(theta'_j) a_j, over sqrt(d+1).

        theta'_j follows the companion relation b_j from the first root of s_j,
        so row t collects the SIC overlaps whose j-th orbit coordinate is t.
        """
        backend = self.backend
        scale = backend.sqrt(d + 1)
        L = []
        for j, order in enumerate(ords):
            theta = backend.roots_from_elementary(s[j])
            if len(theta) != order:
                raise DegenerateInvariant(
                    f"expected {order} roots for orbit factor {j}, got {len(theta)}", precision=backend.precision
                )
            orbit = [theta[0]]
            for _ in range(1, order):
                prev = orbit[-1]
                orbit.append(backend.fsum(b_k * prev ** k for k, b_k in enumerate(b[j])))

            V = backend.vandermonde(orbit)
            width = a[j].shape[1]
            rows = []
            for t in range(order):
                sums = [backend.fsum(V[t][k] * a[j][k, l] for k in range(order)) for l in range(width)]
                rows.append([root / scale for root in backend.roots_from_power_sums(sums)])
            L.append(rows)
        return L

    def intersect(self, L: List[List[List]], ords: Tuple[int, ...]) -> np.ndarray:
        x = np.empty(ords, dtype=object)
        prec = self.config.intersection_precision
        for k in range(x.size):
            t = radix(k, ords)
            common = intersect_all([L[j][t[j]] for j in range(len(ords))], prec=prec, backend=self.backend)
            if len(common) != 1:
                raise AmbiguousIntersection(
                    f"intersection at {t} has {len(common)} elements",
                    index=t,
                    size=len(common),
                    precision=self.backend.precision,
                )
            x[t] = common[0]
        return x

    def validate(self, x: np.ndarray) -> np.ndarray:
        backend = self.backend
        backend.set_precision(self.config.stable_precision, "stable")
        tol = self.config.phase_tolerance
        tol = backend.sqrt(backend.eps) if tol is None else backend.real(tol)
        out = np.empty(x.shape, dtype=object)
        for idx in np.ndindex(*x.shape):
            z = backend.rounded(x[idx])
            if abs(abs(z) - 1) > tol:
                raise PhaseValidationFailure(
                    f"overlap at {idx} has modulus {abs(z)}, not a phase", precision=backend.precision
                )
            out[idx] = z
        return out


def _flatten(a, b, s):
    for a_j in a:
        yield from a_j.flat
    for b_j in b:
        yield from b_j
    for s_j in s:
        yield from s_j


def necromancy(sic_field: SicField, config: Optional[SolverConfig] = None, backend=None) -> NecromancyResult:
    """
    Compute a high-precision SIC fiducial from the ghost of ``sic_field``.

    Raises PrecisionExhausted when max_prec is exceeded and ShiftSearchExhausted
    when no Galois shift of the converged phase array completes to a fiducial.
    """
    t0 = time.perf_counter()
    solver = PrecisionAdaptiveSolver(sic_field, config, backend)
    solution = solver.solve()

    cfg = solver.config
    _logger.info("Now searching through Galois shifts using matrix completion.")
    search = GaloisShiftSearch(
        sic_field,
        solver.backend,
        tolerance=cfg.overlap_precision_max_tol,
        target_digits=cfg.overlap_target_prec,
        base=cfg.base,
    )
    found = search.run(solution.phases)
    return NecromancyResult(
        fiducial=found.fiducial,
        shift=found.shift,
        score=found.score,
        solution=solution,
        diagnostics={
            "elapsed_ms": (time.perf_counter() - t0) * 1000.0,
            "shift_index": found.shift_index,
            **found.diagnostics,
        },
    )
