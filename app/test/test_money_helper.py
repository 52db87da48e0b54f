import math

import pytest

from plugins.billing.helpers import money


def test_money_rounds_half_up_to_cents():
    assert money(0.005) == 0.01
    assert money(0.004) == 0.0
    assert money(2.675) == 2.68
    assert money(None) == 0.0


@pytest.mark.parametrize("value", [math.inf, -math.inf, math.nan, "inf"])
def test_money_rejects_non_finite_values(value):
    with pytest.raises(ValueError):
        money(value)
