"""
Tests for ghost invariant extraction.
"""

import numpy as np
import pytest

from sic_errors import DegenerateInvariant
from sic_invariants import generic_exponent, ghost_invariants, is_generic, reduced_power


def as_array(backend, rows):
    K = np.empty((len(rows), len(rows[0])), dtype=object)
    for i, row in enumerate(rows):
        for j, v in enumerate(row):
            K[i, j] = backend.real(v)
    return K


def matvec(M, v):
    return [sum(m * x for m, x in zip(row, v)) for row in M]


def test_two_by_three_orbit_selects_first_exponent(backend):
    K = as_array(backend, [[1, 2, 3], [4, 5, 7]])
    inv = ghost_invariants(K, backend)

    assert inv.exponents == [1, 1]
    assert [len(b_j) for b_j in inv.b] == [2, 3]
    assert [a_j.shape for a_j in inv.a] == [(2, 3), (3, 2)]

    # b solves the Vandermonde systems against the cyclic shift of c
    for j, c in enumerate(([6, 16], [5, 7, 10])):
        V = backend.vandermonde([backend.real(v) for v in c])
        shifted = c[1:] + c[:1]
        assert [float(v) for v in matvec(V, inv.b[j])] == pytest.approx(shifted, abs=1e-30)


def test_power_sums_of_generic_vector(backend):
    K = as_array(backend, [[1, 2, 3], [4, 5, 7]])
    inv = ghost_invariants(K, backend)
    assert [float(v) for v in inv.s[0]] == [22.0, 292.0]
    assert [float(v) for v in inv.s[1]] == [22.0, 174.0, 1468.0]


def test_vandermonde_round_trip(backend):
    K = as_array(backend, [[0.5, -1.25, 2], [3, 0.75, -2.5]])
    inv = ghost_invariants(K, backend)
    for j in range(K.ndim):
        c = reduced_power(K, j, inv.exponents[j])
        roots = backend.roots_from_power_sums(inv.s[j])
        assert sorted(float(r.real) for r in roots) == pytest.approx(sorted(float(v) for v in c), abs=1e-25)

        V = backend.vandermonde(list(c))
        for l in range(1, inv.a[j].shape[1] + 1):
            expected = reduced_power(K, j, l)
            got = matvec(V, list(inv.a[j][:, l - 1]))
            assert [float(v) for v in got] == pytest.approx([float(v) for v in expected], abs=1e-25)


def test_exponent_search_skips_zero_entries(backend):
    # l = 1 gives a zero row sum along axis 0; l = 2 does not
    K = as_array(backend, [[1, -1], [2, 3]])
    assert ghost_invariants(K, backend).exponents == [2, 1]


def test_exponent_search_is_deterministic(backend):
    K = as_array(backend, [[1, -1], [2, 3]])
    first = [generic_exponent(K, j, backend)[0] for j in range(2)]
    second = [generic_exponent(K, j, backend)[0] for j in range(2)]
    assert first == second


def test_no_generic_exponent_is_degenerate(backend):
    K = as_array(backend, [[1, 2], [2, 1]])
    with pytest.raises(DegenerateInvariant):
        ghost_invariants(K, backend)


def test_genericity_threshold_uses_working_precision(backend):
    tiny = backend.real(2) ** -200
    c = [backend.real(1), 1 + tiny]
    assert not is_generic(c, backend.real(2) ** (10 - backend.precision))
    assert is_generic([backend.real(1), backend.real(2)], backend.real(2) ** (10 - backend.precision))
