"""
Tests for the Galois shift search.
"""

import numpy as np
import pytest

from conftest import hesse_fiducial
from sic_errors import ShiftSearchExhausted
from sic_shift_search import GaloisShiftSearch, normalize
from sic_weyl_heisenberg import SicField


class ShiftScoringField(SicField):
    """Completes to the Hesse SIC only when the shifted array starts with ``winner``."""

    def __init__(self, winners=()):
        super().__init__(3)
        self.winners = set(winners)
        self.seen = []
        self.polished = []

    def seed(self, backend):
        raise NotImplementedError

    def galois_orbit(self):
        raise NotImplementedError

    def basis_pair(self, backend):
        raise NotImplementedError

    def matrix_completion(self, phases, backend):
        self.seen.append(int(phases[0, 0]))
        if int(phases[0, 0]) in self.winners:
            return [2 * v for v in hesse_fiducial(backend)]
        return [backend.complex(1), backend.complex(0), backend.complex(0)]

    def polish(self, z, digits, score, base, backend):
        self.polished.append((digits, base, score(z)))
        return z


PHASES = np.arange(6).reshape(2, 3)


def test_first_passing_shift_wins(backend):
    # shift (1, 2) moves PHASES[1, 1] == 4 to the origin; it is the last shift tried
    field = ShiftScoringField(winners={4})
    found = GaloisShiftSearch(field, backend).find(PHASES)
    assert found.shift == (1, 2)
    assert found.shift_index == 5
    assert len(found.scores) == 6


def test_ties_keep_enumeration_order(backend):
    # shift (0, 0) keeps 0 at the origin, shift (1, 0) brings 3
    field = ShiftScoringField(winners={0, 3})
    found = GaloisShiftSearch(field, backend).find(PHASES)
    assert found.shift == (0, 0)
    assert field.seen == [0]


def test_exhausted_search_is_visible(backend):
    field = ShiftScoringField()
    with pytest.raises(ShiftSearchExhausted) as info:
        GaloisShiftSearch(field, backend).find(PHASES)
    assert not info.value.recoverable
    assert len(field.seen) == 6


def test_run_polishes_and_normalizes(backend):
    field = ShiftScoringField(winners={3})
    found = GaloisShiftSearch(field, backend, target_digits=40, base=10).run(PHASES)
    digits, base, score = field.polished[0]
    assert (digits, base) == (40, 10)
    # the residual is scale-invariant, so the unnormalised candidate already scores ~0
    assert score < 1e-30
    norm2 = sum(abs(v) ** 2 for v in found.fiducial)
    assert abs(norm2 - 1) < 1e-30
    assert "polish_ms" in found.diagnostics


def test_normalize(backend):
    psi = normalize([backend.complex(3), backend.complex(0, 4)], backend)
    assert [complex(v) for v in psi] == pytest.approx([0.6, 0.8j])
