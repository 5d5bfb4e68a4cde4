"""
Cobranças PIX do Timbó Fala: pedidos do marketplace, assinatura do
Paquera e comissão da plataforma
"""

import os
import re
import logging
from decimal import Decimal
from urllib.parse import quote
from typing import Optional, Union
from dataclasses import dataclass

from pix_generator import (
    PixPayload,
    format_amount,
    format_pix_key_for_display,
    generate_pix_code,
)
from pix_qrcode import generate_qr_code_base64
from supabase_api import BusinessPixSettings

logger = logging.getLogger(__name__)

PIX_TIMEOUT_MINUTES = 15
MAX_RECEIPT_SIZE = 5 * 1024 * 1024

PAQUERA_PRICE = Decimal("19.90")
PAQUERA_CITY = "Timbó"
ORDER_CITY = "TIMBO"
COMMISSION_CITY = "Timbo"
COMMISSION_DESCRIPTION = "Comissao Timbo Fala"

Amount = Union[float, Decimal]


class PaymentConfigError(ValueError):
    """Recebedor sem PIX configurado"""


@dataclass
class PixReceiver:
    pix_key: str
    pix_key_type: str
    holder_name: str

    @classmethod
    def platform(cls) -> "PixReceiver":
        """Recebedor da plataforma (Paquera e comissões), lido do ambiente"""
        pix_key = os.getenv("PLATFORM_PIX_KEY")
        holder_name = os.getenv("PLATFORM_PIX_HOLDER_NAME")
        if not pix_key or not holder_name:
            raise PaymentConfigError(
                "PLATFORM_PIX_KEY e PLATFORM_PIX_HOLDER_NAME são obrigatórios")
        return cls(
            pix_key=pix_key,
            pix_key_type=os.getenv("PLATFORM_PIX_KEY_TYPE", "cpf"),
            holder_name=holder_name,
        )


@dataclass
class PixCharge:
    pix_code: str
    qr_code: str
    amount: Amount
    identifier: str
    description: str
    key_display: str
    expires_in_seconds: int = PIX_TIMEOUT_MINUTES * 60

    def to_dict(self) -> dict:
        return {
            "pix_code": self.pix_code,
            "qr_code": self.qr_code,
            "amount": format_amount(self.amount),
            "amount_display": format_brl(self.amount),
            "identifier": self.identifier,
            "description": self.description,
            "key_display": self.key_display,
            "expires_in_seconds": self.expires_in_seconds,
        }


def format_brl(amount: Amount) -> str:
    """19.9 -> 'R$ 19,90'"""
    return "R$ " + (format_amount(amount) or "0.00").replace(".", ",")


def format_countdown(seconds: int) -> str:
    """Tempo restante do PIX em MM:SS"""
    seconds = max(0, int(seconds))
    return f"{seconds // 60:02d}:{seconds % 60:02d}"


def validate_receipt_size(size_bytes: int) -> None:
    if size_bytes > MAX_RECEIPT_SIZE:
        raise ValueError("O comprovante deve ter no máximo 5MB")


def whatsapp_receipt_link(phone: str, order_number: str, total: Amount) -> str:
    """Link do WhatsApp da empresa com a mensagem de envio do comprovante"""
    message = (
        f"Olá! Acabei de fazer o pagamento PIX do pedido {order_number}.\n"
        f"Valor: R$ {format_amount(total) or '0.00'}\n"
        f"Estou enviando o comprovante."
    )
    digits = re.sub(r'\D', '', phone)
    return f"https://wa.me/55{digits}?text={quote(message, safe='')}"


def _build_charge(receiver: PixReceiver, city: str, amount: Amount, identifier: str,
                  description: str, txid: Optional[str] = None) -> PixCharge:
    pix_code = generate_pix_code(PixPayload(
        pix_key=receiver.pix_key,
        pix_key_type=receiver.pix_key_type,
        merchant_name=receiver.holder_name,
        merchant_city=city,
        amount=amount,
        txid=txid,
        description=description,
    ))
    return PixCharge(
        pix_code=pix_code,
        qr_code=generate_qr_code_base64(pix_code),
        amount=amount,
        identifier=identifier,
        description=description,
        key_display=format_pix_key_for_display(receiver.pix_key, receiver.pix_key_type),
    )


def order_pix_charge(order_number: str, total: Amount, customer_name: str,
                     settings: BusinessPixSettings) -> PixCharge:
    """
    Cobrança PIX de um pedido do marketplace

    Args:
        order_number: Número do pedido
        total: Valor total do pedido
        customer_name: Nome do cliente
        settings: Configurações PIX da empresa

    Raises:
        PaymentConfigError: Se a empresa não aceita PIX ou não tem chave
    """
    if not settings.accepts_pix or not settings.pix_key:
        raise PaymentConfigError(f"Empresa {settings.business_name} não aceita PIX")

    receiver = PixReceiver(
        pix_key=settings.pix_key,
        pix_key_type=settings.pix_key_type,
        holder_name=settings.pix_holder_name or settings.business_name,
    )
    description = f"{customer_name[:20]} Ped#{order_number[-6:]}"
    txid = re.sub(r'\D', '', order_number)[-10:] or "***"

    logger.info(f"🔄 PIX do pedido {order_number} - {format_brl(total)}")
    return _build_charge(receiver, ORDER_CITY, total, order_number, description, txid)


def paquera_pix_charge(profile_id: str, receiver: Optional[PixReceiver] = None) -> PixCharge:
    """Assinatura do Paquera, identificada por PAQ-<8 primeiros caracteres do perfil>"""
    identifier = f"PAQ-{profile_id[:8].upper()}"
    logger.info(f"🔄 PIX Paquera {identifier}")
    return _build_charge(receiver or PixReceiver.platform(), PAQUERA_CITY,
                         PAQUERA_PRICE, identifier, f"Paquera {identifier}")


def commission_pix_charge(amount: Amount, receiver: Optional[PixReceiver] = None) -> PixCharge:
    """Pagamento de comissão pendente de uma empresa para a plataforma"""
    if format_amount(amount) is None:
        raise ValueError("Valor da comissão deve ser maior que zero")
    logger.info(f"🔄 PIX de comissão - {format_brl(amount)}")
    return _build_charge(receiver or PixReceiver.platform(), COMMISSION_CITY,
                         amount, COMMISSION_DESCRIPTION, COMMISSION_DESCRIPTION)
