"""
Tests for money helpers, translations and email rendering.
"""
from decimal import Decimal
from types import SimpleNamespace

import pytest

from storefront.core.i18n import Language, order_status_key, resolve_language, translate
from storefront.services import email_templates
from storefront.services.pricing import (
    convert_currency,
    format_price,
    from_minor_units,
    round_half_even,
    to_minor_units,
)


class TestMoney:
    @pytest.mark.parametrize(
        "value,expected",
        [("2.675", "2.68"), ("2.665", "2.66"), ("0.125", "0.12"), ("10", "10.00")],
    )
    def test_round_half_even(self, value, expected):
        assert round_half_even(value) == Decimal(expected)

    def test_minor_units(self):
        assert to_minor_units("114.98", "CAD") == 11498
        assert to_minor_units(Decimal("0.005"), "USD") == 1
        assert from_minor_units(11498, "cad") == Decimal("114.98")

    def test_convert_currency(self):
        assert convert_currency("10.00", "USD", "CAD") == Decimal("13.50")
        assert convert_currency("49.99", "cad", "CAD") == Decimal("49.99")

    def test_convert_unknown_pair(self):
        with pytest.raises(ValueError):
            convert_currency("10", "GBP", "CAD")

    def test_format_price(self):
        assert format_price("1234.5", "CAD", "en") == "$1,234.50"
        assert format_price("1234.5", "CAD", "fr") == "1 234,50 $"
        assert format_price("5", "EUR", "en", show_code=True) == "€5.00 EUR"


class TestTranslations:
    @pytest.mark.parametrize(
        "locale,expected",
        [("fr", Language.FR), ("en-CA", Language.EN), ("EN", Language.EN), ("de", Language.FR), (None, Language.FR)],
    )
    def test_resolve_language(self, locale, expected):
        assert resolve_language(locale) == expected

    def test_translate_with_params(self):
        assert translate(Language.EN, "Labels", "greeting", name="Jane") == "Hello Jane,"
        assert translate("fr", "Labels", "greeting", name="Jane") == "Bonjour Jane,"

    def test_unknown_key_falls_back_to_key(self):
        assert translate(Language.FR, "Labels", "doesNotExist") == "doesNotExist"

    def test_order_status_key(self):
        assert order_status_key("IN_TRANSIT") == "statusInTransit"
        assert order_status_key("UNKNOWN") == ""


def make_order(language: str = "EN") -> SimpleNamespace:
    return SimpleNamespace(
        id="order-1",
        order_number="ORD-2026-000042",
        order_email="jane@example.com",
        language=language,
        currency="CAD",
        subtotal_amount=Decimal("99.98"),
        shipping_amount=Decimal("15.00"),
        tax_amount=Decimal("0.00"),
        total_amount=Decimal("114.98"),
        shipping_address={"firstName": "Jane", "lastName": "Doe"},
        user=None,
        items=[
            SimpleNamespace(
                product_snapshot={"name": "Cast iron teapot <large>"},
                quantity=2,
                total_price=Decimal("99.98"),
                currency="CAD",
            )
        ],
    )


class TestEmailTemplates:
    def test_confirmation_in_customer_language(self):
        subject, html, text = email_templates.order_confirmation(make_order("FR"))

        assert subject == "Confirmation de votre commande ORD-2026-000042"
        assert "Bonjour Jane," in html
        assert "Cast iron teapot &lt;large&gt;" in html
        assert "114,98 $" in text

    def test_shipped_links_tracking(self):
        subject, html, text = email_templates.order_shipped(make_order(), "TRK123", "Canada Post")

        assert "ORD-2026-000042" in subject
        assert email_templates.tracking_url("TRK123") in html
        assert "Canada Post" in text

    def test_refund_mentions_amount(self):
        _, _, text = email_templates.order_refunded(make_order())

        assert "$114.98" in text
