import pytest

from tokenledger.blockchain.fees import split_fee, validate_fee_rate
from tokenledger.core.ledger_exceptions import InvalidInput


def test_split_fee_examples():
    assert split_fee(10_000, 150) == (150, 9_850)
    assert split_fee(9_850, 50) == (49, 9_801)
    assert split_fee(1, 9_999) == (0, 1)


def test_boundary_rates():
    assert split_fee(12_345, 0) == (0, 12_345)
    assert split_fee(12_345, 10_000) == (12_345, 0)


def test_fee_and_net_always_sum_to_gross():
    for gross in (0, 1, 7, 99, 10_001, 123_456_789, 10**30 + 3):
        for rate in (0, 1, 33, 150, 2_500, 9_999, 10_000):
            fee, net = split_fee(gross, rate)
            assert fee + net == gross
            assert fee >= 0 and net >= 0


@pytest.mark.parametrize("rate", [-1, 10_001, 1.5, True, "150"])
def test_invalid_rates_rejected(rate):
    with pytest.raises(InvalidInput):
        validate_fee_rate(rate)


def test_negative_gross_rejected():
    with pytest.raises(InvalidInput):
        split_fee(-5, 100)
