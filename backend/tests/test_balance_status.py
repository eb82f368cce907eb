"""
Tests for balance classification
- warning / critical / blocked levels
- strict threshold comparisons
- mutually exclusive flags
"""
import math
import pytest

from drscale.core.errors import InvalidInput
from drscale.services.balance_status import classify


class TestClassify:

    def test_low_but_not_critical(self):
        status = classify(0.50, 10, critical_threshold=0.10)
        assert status.is_low is True
        assert status.is_critical is False
        assert status.is_blocked is False
        assert status.level == "low"

    def test_critical_when_below_critical_threshold(self):
        status = classify(0.50, 10, critical_threshold=1.00)
        assert status.is_critical is True
        assert status.is_low is False
        assert status.is_blocked is False
        assert status.level == "critical"

    @pytest.mark.parametrize("balance", [0, 0.0, -0.01, -25])
    def test_blocked_at_or_below_zero(self, balance):
        status = classify(balance, 10, 1.0)
        assert status.is_blocked is True
        assert status.is_critical is False
        assert status.is_low is False
        assert status.level == "blocked"

    def test_normal_above_warning(self):
        status = classify(50, 10, 1.0)
        assert not (status.is_low or status.is_critical or status.is_blocked)
        assert status.level == "normal"

    def test_exactly_at_warning_threshold_is_normal(self):
        assert classify(10, 10, 1.0).level == "normal"

    def test_exactly_at_critical_threshold_is_only_low(self):
        status = classify(1.0, 10, 1.0)
        assert status.is_critical is False
        assert status.is_low is True

    @pytest.mark.parametrize("balance", [-5, 0, 0.001, 0.5, 0.99, 1, 1.01, 9.99, 10, 10.01, 500])
    def test_at_most_one_flag_set(self, balance):
        status = classify(balance, 10, 1.0)
        assert sum([status.is_low, status.is_critical, status.is_blocked]) <= 1

    def test_same_inputs_same_result(self):
        assert classify(3.21, 5, 1) == classify(3.21, 5, 1)

    def test_echoes_inputs(self):
        status = classify(7.5, 10, 2)
        assert status.balance == 7.5
        assert status.warning_threshold == 10
        assert status.critical_threshold == 2

    @pytest.mark.parametrize("args", [
        (math.nan, 10, 1),
        (5, math.inf, 1),
        (5, 10, math.nan),
        (None, 10, 1),
    ])
    def test_rejects_non_finite_inputs(self, args):
        with pytest.raises(InvalidInput):
            classify(*args)
