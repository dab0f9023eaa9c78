"""
Pytest fixtures for the necromancy test suite.

The toy field is the real quadratic field Q(sqrt5) with Galois automorphism
sqrt5 -> -sqrt5. Its two ghost overlaps are the real roots of

    x^2 - (1 + 2 sqrt5) x + 4

and sign-switching turns them into the roots of x^2 - (1 - 2 sqrt5) x + 4,
a complex conjugate pair of modulus 2 = sqrt(d+1) for d = 3. The whole
pipeline therefore converges to unit phases at the first precision.
"""

import numpy as np
import pytest

from sic_dualize import BasisPair
from sic_numeric import MpmathBackend
from sic_weyl_heisenberg import SicField


def hesse_fiducial(backend):
    """(0, 1, -1)/sqrt2, a SIC fiducial in dimension 3."""
    r = 1 / backend.sqrt(2)
    return [backend.complex(0), backend.complex(r), backend.complex(-r)]


class QuadraticToyField(SicField):
    """Orbit of order 2 over Q(sqrt5); overlaps are fixed ghost values."""

    def __init__(self, d=3, key=None, degenerate=False, sic_at_call=None):
        super().__init__(d, key)
        self.degenerate = degenerate
        self.sic_at_call = sic_at_call
        self.completion_calls = []
        self.polish_calls = []

    def seed(self, backend):
        return [backend.complex(1)] + [backend.complex(0)] * (self.d - 1)

    def galois_orbit(self):
        return (2,), np.array([1, 2])

    def basis_pair(self, backend):
        root5 = backend.sqrt(5)
        return BasisPair.from_sequences([backend.real(1), root5], [backend.real(1), -root5])

    def ghost_values(self, backend):
        e1 = 1 + 2 * backend.sqrt(5)
        disc = backend.sqrt(e1 ** 2 - 16)
        if self.degenerate:
            return (e1 / 2, e1 / 2)
        return ((e1 + disc) / 2, (e1 - disc) / 2)

    def overlap(self, p, psi, phi, backend):
        return backend.complex(self.ghost_values(backend)[int(p) - 1])

    def matrix_completion(self, phases, backend):
        self.completion_calls.append(phases.copy())
        if self.sic_at_call is not None and len(self.completion_calls) - 1 == self.sic_at_call:
            return hesse_fiducial(backend)
        return [backend.complex(1), backend.complex(0), backend.complex(0)]

    def polish(self, z, digits, score, base, backend):
        self.polish_calls.append((digits, base, score(z)))
        return z


@pytest.fixture
def backend():
    return MpmathBackend(128)


@pytest.fixture
def toy_field():
    return QuadraticToyField()


@pytest.fixture
def field_factory():
    return QuadraticToyField


class RationalGridField(QuadraticToyField):
    """
    Two orbit factors of orders (2, 3) with integer ghost overlaps.

    The basis pair is the identity on Q, so dualization reproduces K and the
    phase array is K / sqrt(d+1) up to a cyclic shift. Every multi-index needs
    the rows of both factors to agree, which happens only once the dualized
    invariants are accurate to the intersection precision.
    """

    GRID = ((1, 2, 4), (3, 5, 8))

    def galois_orbit(self):
        return (2, 3), np.arange(1, 7).reshape(2, 3)

    def basis_pair(self, backend):
        return BasisPair.from_sequences([backend.real(1)], [backend.real(1)])

    def overlap(self, p, psi, phi, backend):
        flat = [v for row in self.GRID for v in row]
        return backend.complex(flat[int(p) - 1])
