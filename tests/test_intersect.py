"""
Tests for the rounded complex intersection.
"""

import pytest

from sic_intersect import approx_complex_intersection, intersect_all


A = [0.5 + 0.25j, -1.5 + 2j, 3 - 0.125j]
B = [3 - 0.125j, 7 + 1j, 0.5 + 0.25j]


def as_complex(values):
    return [complex(z) for z in values]


def test_low_precision_matches_nearby_values():
    got = approx_complex_intersection([1.0000001 + 0j, 2 + 0j], [1.0000002 + 0j, 3 + 0j], prec=4)
    assert as_complex(got) == [1 + 0j]


def test_high_precision_separates_nearby_values():
    assert approx_complex_intersection([1.0000001 + 0j, 2 + 0j], [1.0000002 + 0j, 3 + 0j], prec=30) == []


def test_symmetric():
    assert as_complex(approx_complex_intersection(A, B)) == as_complex(approx_complex_intersection(B, A))


def test_idempotent_and_deduplicated():
    got = approx_complex_intersection(A + A, A)
    assert sorted(as_complex(got), key=lambda z: (z.real, z.imag)) == sorted(A, key=lambda z: (z.real, z.imag))


def test_decimal_base():
    got = approx_complex_intersection([0.123456 + 0j], [0.123457 + 0j], prec=5, base=10)
    assert len(got) == 1
    assert complex(got[0]) == pytest.approx(0.12346)


def test_intersect_all_reduces_pairwise():
    C = [0.5 + 0.25j, 9j]
    assert as_complex(intersect_all([A, B, C])) == [0.5 + 0.25j]
    assert intersect_all([A, B, [11 + 0j]]) == []


def test_intersect_all_single_set_deduplicates():
    assert len(intersect_all([[1 + 1j, 1 + 1j, 2 + 0j]])) == 2
