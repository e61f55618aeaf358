"""
CarbonChain - Validator Tests
===============================
"""

import pytest

from carbon_chain.constants import estimate_credits, format_address, wei_to_native, native_to_wei
from carbon_chain.errors import (
    InvalidAddressError,
    InvalidAmountError,
    MissingFieldError,
    ValidationError,
)
from carbon_chain.utils.validators import (
    is_evm_address,
    require_fields,
    validate_evm_address,
    validate_positive_int,
    validate_positive_number,
    validate_tx_hash,
)


class TestAddressValidation:
    """Test EVM address checks"""

    @pytest.mark.parametrize("address", [
        "0x087573bec726A13d77F521318b3FD7dE3c830988",
        "0x" + "0" * 40,
    ])
    def test_valid(self, address):
        assert is_evm_address(address)
        assert validate_evm_address(address) == address

    @pytest.mark.parametrize("address", [
        None,
        "",
        "087573bec726A13d77F521318b3FD7dE3c830988",
        "0x087573bec726A13d77F521318b3FD7dE3c83098",
        "0x087573bec726A13d77F521318b3FD7dE3c830988\n",
        "0xZZ7573bec726A13d77F521318b3FD7dE3c830988",
    ])
    def test_invalid(self, address):
        assert not is_evm_address(address)
        with pytest.raises(InvalidAddressError) as exc_info:
            validate_evm_address(address, "ngoAddress")
        assert exc_info.value.details["field"] == "ngoAddress"

    def test_tx_hash(self):
        assert validate_tx_hash("0x" + "a" * 64)
        with pytest.raises(ValidationError):
            validate_tx_hash("0x1234")


class TestAmountValidation:
    """Test amount checks"""

    def test_integral_float_accepted(self):
        assert validate_positive_int(400.0) == 400

    @pytest.mark.parametrize("value", [0, -1, 1.5, True, "3", None, float("nan")])
    def test_positive_int_rejects(self, value):
        with pytest.raises(InvalidAmountError):
            validate_positive_int(value)

    def test_positive_number(self):
        assert validate_positive_number(0.5) == 0.5
        with pytest.raises(InvalidAmountError):
            validate_positive_number(float("inf"))


class TestRequireFields:
    """Test missing field detection"""

    def test_lists_all_missing_in_order(self):
        with pytest.raises(MissingFieldError) as exc_info:
            require_fields({"a": "x", "b": " ", "c": None}, ("a", "b", "c", "d"))

        assert exc_info.value.details["missing"] == ["b", "c", "d"]

    def test_zero_is_present(self):
        require_fields({"amount": 0}, ("amount",))


class TestPricingHelpers:
    """Test credit estimate and unit conversion"""

    @pytest.mark.parametrize("area,expected", [(20, 400), (0.025, 1), (0.024, 0), (12.5, 250)])
    def test_estimate_credits(self, area, expected):
        assert estimate_credits(area) == expected

    def test_wei_conversion(self):
        assert native_to_wei(wei_to_native(10**15)) == 10**15

    def test_format_address(self):
        assert format_address("0x087573bec726A13d77F521318b3FD7dE3c830988") == "0x0875...0988"
