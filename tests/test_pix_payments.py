"""
Tests for Timbó Fala PIX charges.
"""

import base64
from decimal import Decimal
from urllib.parse import unquote

import pytest

from pix_payments import (
    PIX_TIMEOUT_MINUTES,
    PaymentConfigError,
    PixReceiver,
    commission_pix_charge,
    format_brl,
    format_countdown,
    order_pix_charge,
    paquera_pix_charge,
    validate_receipt_size,
    whatsapp_receipt_link,
)
from pix_qrcode import generate_qr_code_base64
from validate_pix import decode_pix_code


class TestHelpers:

    def test_format_brl(self):
        assert format_brl(19.9) == "R$ 19,90"
        assert format_brl(Decimal("1234.5")) == "R$ 1234,50"
        assert format_brl(0) == "R$ 0,00"

    def test_format_countdown(self):
        assert format_countdown(PIX_TIMEOUT_MINUTES * 60) == "15:00"
        assert format_countdown(61) == "01:01"
        assert format_countdown(0) == "00:00"
        assert format_countdown(-5) == "00:00"

    def test_receipt_size_limit(self):
        validate_receipt_size(5 * 1024 * 1024)
        with pytest.raises(ValueError, match="5MB"):
            validate_receipt_size(5 * 1024 * 1024 + 1)

    def test_whatsapp_receipt_link(self):
        link = whatsapp_receipt_link("(47) 99999-8888", "PED-20240001", 42.5)
        assert link.startswith("https://wa.me/5547999998888?text=")
        message = unquote(link.split("text=", 1)[1])
        assert "pedido PED-20240001" in message
        assert "Valor: R$ 42.50" in message


class TestPixReceiver:

    def test_platform_from_env(self, platform_env):
        receiver = PixReceiver.platform()
        assert receiver.pix_key == "096.078.909-06"
        assert receiver.pix_key_type == "cpf"
        assert receiver.holder_name == "Bruno Eduardo Ochner"

    def test_platform_not_configured(self, monkeypatch):
        monkeypatch.delenv('PLATFORM_PIX_KEY', raising=False)
        monkeypatch.delenv('PLATFORM_PIX_HOLDER_NAME', raising=False)
        with pytest.raises(PaymentConfigError):
            PixReceiver.platform()


class TestOrderPixCharge:

    def test_order_charge(self, business_settings):
        charge = order_pix_charge("PED-2024-000123", 57.3, "Joana da Silva Pereira Santos", business_settings)
        decoded = decode_pix_code(charge.pix_code)

        assert decoded.crc_valid
        assert decoded.pix_key == "contato@padariacentral.com.br"
        assert decoded.merchant_name == "MARIA SOUZA"
        assert decoded.merchant_city == "TIMBO"
        assert decoded.amount == "57.30"
        assert decoded.txid == "2024000123"
        assert decoded.description == "Joana da Silva Perei Ped#000123"
        assert charge.identifier == "PED-2024-000123"
        assert charge.key_display == "contato@PadariaCentral.com.br"
        assert charge.expires_in_seconds == 900

    def test_falls_back_to_business_name(self, business_settings):
        business_settings.pix_holder_name = None
        charge = order_pix_charge("42", 10, "Ana", business_settings)
        assert decode_pix_code(charge.pix_code).merchant_name == "PADARIA CENTRAL"

    def test_order_without_digits_uses_default_txid(self, business_settings):
        charge = order_pix_charge("ABC", 10, "Ana", business_settings)
        assert decode_pix_code(charge.pix_code).txid == "***"

    def test_business_without_pix(self, business_settings):
        business_settings.accepts_pix = False
        with pytest.raises(PaymentConfigError):
            order_pix_charge("1", 10, "Ana", business_settings)

    def test_business_without_key(self, business_settings):
        business_settings.pix_key = None
        with pytest.raises(PaymentConfigError):
            order_pix_charge("1", 10, "Ana", business_settings)


class TestPaqueraPixCharge:

    def test_paquera_charge(self, platform_receiver):
        charge = paquera_pix_charge("abcd1234-5678-90ef", receiver=platform_receiver)
        decoded = decode_pix_code(charge.pix_code)

        assert charge.identifier == "PAQ-ABCD1234"
        assert charge.description == "Paquera PAQ-ABCD1234"
        assert decoded.amount == "19.90"
        assert decoded.merchant_city == "TIMBÓ"
        assert decoded.crc_valid
        assert charge.key_display == "096.078.909-06"

    def test_uses_platform_env(self, platform_env):
        charge = paquera_pix_charge("abcd1234")
        assert decode_pix_code(charge.pix_code).pix_key == "09607890906"

    def test_to_dict(self, platform_receiver):
        result = paquera_pix_charge("abcd1234", receiver=platform_receiver).to_dict()
        assert result["amount"] == "19.90"
        assert result["amount_display"] == "R$ 19,90"
        assert result["qr_code"].startswith("data:image/png;base64,")


class TestCommissionPixCharge:

    def test_commission_charge(self, platform_receiver):
        charge = commission_pix_charge(Decimal("12.34"), receiver=platform_receiver)
        decoded = decode_pix_code(charge.pix_code)

        assert decoded.description == "Comissao Timbo Fala"
        assert decoded.merchant_city == "TIMBO"
        assert decoded.amount == "12.34"

    @pytest.mark.parametrize("amount", [0, -3, float("nan"), float("inf")])
    def test_rejects_non_positive(self, amount, platform_receiver):
        with pytest.raises(ValueError):
            commission_pix_charge(amount, receiver=platform_receiver)


class TestQrCode:

    def test_png_data_uri(self, paquera_payload):
        from pix_generator import generate_pix_code
        qr_code = generate_qr_code_base64(generate_pix_code(paquera_payload))
        prefix = "data:image/png;base64,"
        assert qr_code.startswith(prefix)
        assert base64.b64decode(qr_code[len(prefix):]).startswith(b"\x89PNG")

    def test_empty_code(self):
        with pytest.raises(ValueError):
            generate_qr_code_base64("")
