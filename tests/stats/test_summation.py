# tests/stats/test_summation.py
import math
import sys
from fractions import Fraction

from hypothesis import given, settings
from hypothesis import strategies as st

from simcollect.stats.summation import CompensatedSummation

EPS = sys.float_info.epsilon

finite = st.floats(min_value=-1e12, max_value=1e12, allow_nan=False, allow_infinity=False)


def _kahan(values) -> float:
    acc = CompensatedSummation()
    for v in values:
        acc.add(v)
    return acc.get_sum()


def test_empty_sum_is_zero():
    assert CompensatedSummation().get_sum() == 0.0


def test_get_sum_between_additions():
    acc = CompensatedSummation()
    acc.add(1.5)
    assert acc.get_sum() == 1.5
    acc.add(2.5)
    assert acc.get_sum() == 4.0
    assert float(acc) == 4.0


@settings(max_examples=200, deadline=None)
@given(st.lists(finite, max_size=2000))
def test_error_bounded_independent_of_length(values):
    exact = sum((Fraction(v) for v in values), Fraction(0))
    magnitude = sum((Fraction(abs(v)) for v in values), Fraction(0))

    error = abs(Fraction(_kahan(values)) - exact)

    # |E| <= (2u + O(n u^2)) * sum|x_i|，与项数无关
    assert error <= Fraction(4 * EPS) * magnitude + Fraction(sys.float_info.min)


def test_many_small_terms_beat_naive_summation():
    values = [1.0] + [1e-16] * 100_000
    exact = sum((Fraction(v) for v in values), Fraction(0))

    naive = 0.0
    for v in values:
        naive += v

    kahan_error = abs(Fraction(_kahan(values)) - exact)
    naive_error = abs(Fraction(naive) - exact)

    assert naive == 1.0
    assert kahan_error < naive_error
    assert kahan_error <= Fraction(EPS)


def test_non_finite_values_propagate():
    acc = CompensatedSummation()
    acc.add(1.0)
    acc.add(math.inf)
    assert math.isinf(acc.get_sum()) or math.isnan(acc.get_sum())

    acc = CompensatedSummation()
    acc.add(math.nan)
    acc.add(2.0)
    assert math.isnan(acc.get_sum())
