"""Tests for E.164 normalization and display formatting."""
import pytest

from config.settings import PhoneConfig
from models.errors import InvalidNumberError
from utils.formatting import format_duration, format_price
from utils.phone import digits_only, is_valid_e164, normalize_e164, same_number


class TestNormalizeE164:
    @pytest.mark.parametrize("raw", [
        "9107555577",
        "19107555577",
        "+19107555577",
        "(910) 755-5577",
        "910.755.5577",
        "+1 (910) 755-5577",
    ])
    def test_us_shapes_agree(self, raw, phone_config):
        assert normalize_e164(raw, phone_config) == "+19107555577"

    def test_plus_prefix_kept_verbatim(self, phone_config):
        assert normalize_e164("+44 20 7946 0958", phone_config) == "+442079460958"

    def test_short_number_prefixed_in_lenient_mode(self, phone_config):
        assert normalize_e164("5551234", phone_config) == "+15551234"

    def test_strict_rejects_unknown_shape(self):
        with pytest.raises(InvalidNumberError):
            normalize_e164("5551234", PhoneConfig(strict=True))

    def test_strict_accepts_known_shapes(self):
        config = PhoneConfig(strict=True)
        assert normalize_e164("9107555577", config) == "+19107555577"

    @pytest.mark.parametrize("raw", ["", "   ", None, "abc", "+"])
    def test_rejects_empty_or_digitless(self, raw, phone_config):
        with pytest.raises(InvalidNumberError):
            normalize_e164(raw, phone_config)

    def test_other_country_code(self):
        config = PhoneConfig(default_country_code="91", national_number_length=10)
        assert normalize_e164("9876543210", config) == "+919876543210"
        assert normalize_e164("919876543210", config) == "+919876543210"


class TestHelpers:
    def test_digits_only(self):
        assert digits_only("+1 (910) 755-5577") == "19107555577"
        assert digits_only(None) == ""

    def test_is_valid_e164(self):
        assert is_valid_e164("+19107555577")
        assert not is_valid_e164("19107555577")
        assert not is_valid_e164("+0123")

    def test_same_number(self, phone_config):
        assert same_number("9107555577", "+1 910 755 5577", phone_config)
        assert not same_number("9107555577", "9107555578", phone_config)
        assert not same_number(None, "9107555577", phone_config)


class TestFormatting:
    def test_format_duration(self):
        assert format_duration(0) == "0:00"
        assert format_duration(45) == "0:45"
        assert format_duration(125) == "2:05"
        assert format_duration(None) == "0:00"

    def test_format_price_uses_magnitude(self):
        assert format_price(-0.014, "USD") == "0.0140 USD"
        assert format_price(None) == ""
