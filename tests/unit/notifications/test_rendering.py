"""Unit tests for email composition."""

from decimal import Decimal

import pytest

from modules.notifications.constants import EmailKind
from modules.notifications.rendering import TEMPLATES, brl, render_email

pytestmark = pytest.mark.unit


def _context(**overrides):
    ctx = {
        "order_id": 42,
        "customer_name": "Maria Silva",
        "email": "maria@example.com",
        "phone": "11988887777",
        "payment_method_label": "PIX",
        "items": [{"title": "Dom Casmurro", "quantity": 2, "price": Decimal("50.00")}],
        "shipping": Decimal("15.00"),
        "total": Decimal("115.00"),
        "discount_amount": Decimal("0.00"),
        "coupon_code": "",
        "address_line": "Praça da Sé, nº 100, São Paulo - SP, CEP 01001000",
        "note": "",
    }
    ctx.update(overrides)
    return ctx


class TestRenderEmail:
    def test_every_kind_has_a_template(self):
        assert set(TEMPLATES) == set(EmailKind.values)

    def test_client_confirmation(self):
        email = render_email(EmailKind.ORDER_PAID_CLIENT, _context(brand="Livraria Teste"))

        assert email.subject == "Pagamento CONFIRMADO (#42) - Livraria Teste"
        assert "Olá, Maria Silva!" in email.text
        assert "Dom Casmurro 2x R$ 50.00" in email.text
        assert "Total: R$ 115.00" in email.text
        assert "Frete: R$ 15.00" in email.text
        assert "<table>" in email.html

    def test_free_shipping_and_discount(self):
        email = render_email(
            EmailKind.ORDER_PAID_CLIENT,
            _context(shipping=Decimal("0"), discount_amount=Decimal("15.00"), coupon_code="BEMVINDO"),
        )
        assert "Frete: Grátis" in email.text
        assert "Desconto (BEMVINDO): -R$ 15.00" in email.text

    def test_html_is_escaped(self):
        email = render_email(
            EmailKind.ORDER_PAID_SELLER, _context(customer_name="<script>x</script>")
        )
        assert "<script>" not in email.html
        assert "&lt;script&gt;" in email.html

    def test_optional_blocks_are_left_out(self):
        email = render_email(EmailKind.PAYOUT_FAILED, _context(amount_net=Decimal("0.50")))
        assert "Motivo" not in email.text

        email = render_email(
            EmailKind.PAYOUT_FAILED, _context(amount_net=Decimal("0.50"), reason="abaixo do mínimo")
        )
        assert "Motivo: abaixo do mínimo" in email.text

    def test_custom_block_list(self):
        email = render_email(EmailKind.ORDER_PAID_CLIENT, _context(), blocks=["greeting"])
        assert email.text == "Olá, Maria Silva!"

    def test_unknown_block_raises(self):
        with pytest.raises(KeyError):
            render_email(EmailKind.ORDER_PAID_CLIENT, _context(), blocks=["nope"])


def test_brl():
    assert brl(Decimal("9.5")) == "R$ 9.50"
    assert brl(None) == "-"
