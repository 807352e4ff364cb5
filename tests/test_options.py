"""Tests for the purchase option model."""

import pytest
from pydantic import ValidationError

from paygate.models.options import InvalidOption, Option, build_options


class TestBuild:
    def test_mapping_with_option_keys(self):
        options = build_options({Option.CURRENCY: "USD", Option.ORDER_ID: "o-1"})
        assert options[Option.CURRENCY] == "USD"
        assert options.get(Option.ORDER_ID) == "o-1"

    def test_pairs_with_string_keys(self):
        options = build_options([("CURRENCY", "eur"), ("description", "Two mugs")])
        assert options.currency == "EUR"
        assert options.description == "Two mugs"

    def test_empty(self):
        options = build_options()
        assert Option.CURRENCY not in options
        assert options.as_dict() == {}

    def test_return_url_and_email(self):
        options = build_options({
            Option.CURRENCY: "USD",
            Option.RETURN_URL: "https://shop.example.com/thanks",
            Option.CUSTOMER_EMAIL: "buyer@example.com",
        })
        assert options.as_dict()[Option.RETURN_URL].startswith("https://shop.example.com/thanks")
        assert options[Option.CUSTOMER_EMAIL] == "buyer@example.com"

    def test_missing_key_raises_key_error(self):
        options = build_options({Option.CURRENCY: "USD"})
        with pytest.raises(KeyError):
            options[Option.ORDER_ID]

    def test_missing_reports_first_absent(self):
        options = build_options({Option.CURRENCY: "USD"})
        assert options.missing([Option.CURRENCY, Option.RETURN_URL]) == Option.RETURN_URL
        assert options.missing([Option.CURRENCY]) is None


class TestRejection:
    def test_unknown_key(self):
        with pytest.raises(InvalidOption) as exc:
            build_options({"CURRENCY": "USD", "COLOUR": "red"})
        assert exc.value.key == "COLOUR"

    def test_duplicate_key(self):
        with pytest.raises(InvalidOption) as exc:
            build_options([("currency", "USD"), (Option.CURRENCY, "EUR")])
        assert exc.value.key == Option.CURRENCY

    def test_bad_currency_format(self):
        with pytest.raises(InvalidOption) as exc:
            build_options({Option.CURRENCY: "US Dollars"})
        assert exc.value.key == Option.CURRENCY
        assert exc.value.expected == "ISO 4217 currency code"

    def test_wrong_value_type(self):
        with pytest.raises(InvalidOption) as exc:
            build_options({Option.ORDER_ID: 123})
        assert exc.value.key == Option.ORDER_ID

    def test_relative_url(self):
        with pytest.raises(InvalidOption) as exc:
            build_options({Option.RETURN_URL: "/thanks"})
        assert exc.value.key == Option.RETURN_URL

    def test_bad_email(self):
        with pytest.raises(InvalidOption) as exc:
            build_options({Option.CUSTOMER_EMAIL: "not-an-email"})
        assert exc.value.key == Option.CUSTOMER_EMAIL

    def test_first_offender_in_input_order(self):
        with pytest.raises(InvalidOption) as exc:
            build_options([(Option.CUSTOMER_EMAIL, "nope"), (Option.CURRENCY, "12")])
        assert exc.value.key == Option.CUSTOMER_EMAIL

    def test_invalid_option_is_value_error(self):
        with pytest.raises(ValueError):
            build_options({"bogus": 1})

    def test_bare_string(self):
        with pytest.raises(InvalidOption) as exc:
            build_options("currency")
        assert exc.value.key == "currency"

    @pytest.mark.parametrize("raw", [
        [("currency", "USD", "extra")],
        [("currency",)],
        ["cu"],
        [42],
    ])
    def test_items_must_be_pairs(self, raw):
        with pytest.raises(InvalidOption) as exc:
            build_options(raw)
        assert exc.value.expected == "(key, value) pair"


class TestImmutability:
    def test_frozen(self):
        options = build_options({Option.CURRENCY: "USD"})
        with pytest.raises(ValidationError):
            options.currency = "EUR"
