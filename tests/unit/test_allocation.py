"""Unit tests for integer split helpers"""

from poker_ledger.domain.allocation import (
    allocate_proportionally,
    distribute_by_percentage,
    distribute_equally,
    equal_percentages,
)


def test_distribute_equally_even_split():
    """Test evenly divisible total"""
    assert distribute_equally(900, 3) == [300, 300, 300]


def test_distribute_equally_remainder_to_first():
    """Test remainder handed one unit at a time to the first parts"""
    parts = distribute_equally(1000, 3)

    assert parts == [334, 333, 333]
    assert sum(parts) == 1000


def test_distribute_equally_no_parts():
    """Test zero participants yields nothing"""
    assert distribute_equally(1000, 0) == []


def test_equal_percentages_sum_to_100():
    """Test generated percentages always add up"""
    assert sum(equal_percentages(3)) == 100
    assert sum(equal_percentages(7)) == 100


def test_distribute_by_percentage_last_absorbs_rounding():
    """Test last part absorbs the rounding remainder"""
    parts = distribute_by_percentage(1000, [33, 33, 34])

    assert parts[:2] == [330, 330]
    assert parts[2] == 340
    assert sum(parts) == 1000


def test_distribute_by_percentage_odd_total():
    """Test shares stay exact on totals that do not divide cleanly"""
    parts = distribute_by_percentage(1001, [50, 50])
    assert sum(parts) == 1001


def test_allocate_proportionally_residual_goes_to_index():
    """Test truncation residual lands on the requested part"""
    shares = allocate_proportionally(1001, [3000, 1000], residual_index=0)

    assert shares == [751, 250]
    assert sum(shares) == 1001


def test_allocate_proportionally_zero_weights():
    """Test no weights means nothing is allocated"""
    assert allocate_proportionally(500, [0, 0], residual_index=0) == [0, 0]
