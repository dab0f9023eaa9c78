#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Galois shift search.

The accepted phase array is correct only up to an unknown element of the Galois
orbit, i.e. a cyclic shift along each orbit factor. Every shift is tried in
mixed-radix order; the first one whose matrix completion passes the overlap
test wins (no tie-break). The winner is polished once to the target number of
digits and normalised.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Dict, List

import numpy as np

from sic_errors import ShiftSearchExhausted
from sic_weyl_heisenberg import circshift, radix, re_im_proj, re_im_unproj, sic_overlap_residual

_logger = logging.getLogger(__name__)


@dataclass
class ShiftSearchResult:
    fiducial: List
    shift: tuple
    shift_index: int
    score: Any
    scores: List[Any] = field(default_factory=list)
    diagnostics: Dict[str, Any] = field(default_factory=dict)


def normalize(psi: List, backend) -> List:
    norm = backend.sqrt(backend.re(backend.fsum(backend.conj(x) * x for x in psi)))
    return [x / norm for x in psi]


class GaloisShiftSearch:
    def __init__(self, sic_field, backend, *, tolerance: float = 1e-6, target_digits: int = 30, base: int = 2):
        self.field = sic_field
        self.backend = backend
        self.tolerance = tolerance
        self.target_digits = target_digits
        self.base = base

    def find(self, phases: np.ndarray) -> ShiftSearchResult:
        """First Galois shift whose matrix completion scores below the tolerance."""
        ords = phases.shape
        n = phases.size
        scores: List[Any] = []
        t0 = time.perf_counter()

        for k in range(n):
            shift = radix(k, ords)
            candidate = self.field.matrix_completion(circshift(phases, shift), self.backend)
            score = self.field.overlap_quality(candidate, self.backend)
            scores.append(score)
            _logger.debug("shift %s: overlap score %s", shift, score)
            if score < self.tolerance:
                _logger.info("Fiducial vector found at shift %s with all overlaps correct to <= %s", shift, score)
                return ShiftSearchResult(
                    fiducial=candidate,
                    shift=shift,
                    shift_index=k,
                    score=score,
                    scores=scores,
                    diagnostics={"elapsed_ms": (time.perf_counter() - t0) * 1000.0},
                )

        raise ShiftSearchExhausted(
            f"none of the {n} Galois shifts completes to a fiducial with overlap score < {self.tolerance}",
            precision=self.backend.precision,
        )

    def polish(self, psi: List) -> List:
        """Refine psi to ``target_digits`` and normalise to unit norm."""
        backend = self.backend
        z = re_im_proj([backend.complex(x) for x in psi], backend)
        z = self.field.polish(z, self.target_digits, partial(sic_overlap_residual, backend=backend), self.base, backend)
        return normalize(re_im_unproj(z, backend), backend)

    def run(self, phases: np.ndarray) -> ShiftSearchResult:
        found = self.find(phases)
        _logger.info("Increasing precision to %d digits.", self.target_digits)
        t0 = time.perf_counter()
        found.fiducial = self.polish(found.fiducial)
        found.diagnostics["polish_ms"] = (time.perf_counter() - t0) * 1000.0
        return found
