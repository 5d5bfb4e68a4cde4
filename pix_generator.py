#!/usr/bin/env python3
"""
Gerador de payload PIX (BR Code) segundo o padrão EMV QR Code do Banco Central
"""

import re
import logging
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional, Union
from dataclasses import dataclass

logger = logging.getLogger(__name__)

PIX_GUI = "br.gov.bcb.pix"
MERCHANT_CATEGORY_CODE = "0000"
CURRENCY_BRL = "986"
COUNTRY_CODE = "BR"
DEFAULT_TXID = "***"

MAX_MERCHANT_NAME = 25
MAX_MERCHANT_CITY = 15
MAX_DESCRIPTION = 72

CRC_POLYNOMIAL = 0x1021
CRC_INITIAL = 0xFFFF
CRC_PREFIX = "6304"


class PixKeyType(str, Enum):
    CPF = "cpf"
    CNPJ = "cnpj"
    EMAIL = "email"
    PHONE = "phone"
    RANDOM = "random"


class MalformedPixKeyError(ValueError):
    """Chave PIX incompatível com o tipo informado (modo estrito)"""


@dataclass
class PixPayload:
    pix_key: str
    pix_key_type: Union[PixKeyType, str]
    merchant_name: str
    merchant_city: str
    amount: Optional[Union[float, Decimal]] = None
    txid: Optional[str] = None
    description: Optional[str] = None


def _digits(value: str) -> str:
    return re.sub(r'\D', '', value)


def _mask_key(key: str) -> str:
    if len(key) <= 5:
        return "***"
    return f"{key[:3]}***{key[-2:]}"


def format_pix_key(key: str, key_type: Union[PixKeyType, str]) -> str:
    """
    Normaliza a chave PIX para o formato de transmissão

    Nunca lança exceção: entrada malformada gera uma chave malformada.
    """
    if key_type in (PixKeyType.CPF, PixKeyType.CNPJ):
        return _digits(key)
    if key_type == PixKeyType.PHONE:
        digits = _digits(key)
        if digits.startswith("55"):
            return "+" + digits
        return "+55" + digits
    if key_type == PixKeyType.EMAIL:
        return key.lower()
    return key


def validate_pix_key(key: str, key_type: Union[PixKeyType, str]) -> str:
    """
    Valida e normaliza a chave PIX (modo estrito)

    Args:
        key: Chave digitada pelo usuário
        key_type: Tipo da chave

    Returns:
        Chave normalizada para transmissão

    Raises:
        MalformedPixKeyError: Se a chave não corresponder ao tipo
    """
    if not key:
        raise MalformedPixKeyError("Chave PIX é obrigatória")

    if key_type == PixKeyType.CPF:
        digits = _digits(key)
        if len(digits) != 11:
            raise MalformedPixKeyError("CPF deve ter 11 dígitos")
        return digits

    if key_type == PixKeyType.CNPJ:
        digits = _digits(key)
        if len(digits) != 14:
            raise MalformedPixKeyError("CNPJ deve ter 14 dígitos")
        return digits

    if key_type == PixKeyType.PHONE:
        digits = _digits(key)
        if len(digits) in (10, 11):
            return "+55" + digits
        if len(digits) in (12, 13) and digits.startswith("55"):
            return "+" + digits
        raise MalformedPixKeyError(f"Telefone inválido: {len(digits)} dígitos")

    if key_type == PixKeyType.EMAIL:
        email = key.strip().lower()
        if not re.match(r'^[^@\s]+@[^@\s]+\.[^@\s]+$', email):
            raise MalformedPixKeyError("E-mail inválido")
        return email

    if key_type == PixKeyType.RANDOM:
        if not re.match(r'^[0-9a-fA-F]{32}$', key.replace('-', '')):
            raise MalformedPixKeyError("Chave aleatória deve ser um UUID")
        return key

    raise MalformedPixKeyError(f"Tipo de chave desconhecido: {key_type}")


def tlv_field(tag: str, value: str) -> str:
    """Codifica um campo EMV: ID (2) + tamanho (2) + valor"""
    return f"{tag}{len(value):02d}{value}"


def crc16_ccitt(payload: str) -> str:
    """
    Calcula CRC16 CCITT-FALSE (poly 0x1021, init 0xFFFF) em 4 dígitos hex
    """
    crc = CRC_INITIAL

    for char in payload:
        crc ^= ord(char) << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = (crc << 1) ^ CRC_POLYNOMIAL
            else:
                crc <<= 1
            crc &= 0xFFFF

    return f"{crc:04X}"


def format_amount(amount: Optional[Union[float, Decimal]]) -> Optional[str]:
    """
    Valor com 2 casas decimais, ou None quando ausente, zero, negativo
    ou não finito (NaN/infinito): sem ID 54 o valor fica livre
    """
    if amount is None:
        return None
    # Decimal(float) é exato; empate arredonda para cima
    value = Decimal(amount)
    if not value.is_finite() or value <= 0:
        return None
    return str(value.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def build_payload(payload: PixPayload, strict: bool = False) -> str:
    """
    Monta o payload PIX sem o CRC (termina em "6304")

    A ordem dos campos é fixa; apps de banco rejeitam outra ordem.
    """
    if strict:
        formatted_key = validate_pix_key(payload.pix_key, payload.pix_key_type)
        if payload.amount is not None:
            value = Decimal(payload.amount)
            if not value.is_finite():
                raise ValueError("Valor deve ser um número finito")
            if value < 0:
                raise ValueError("Valor não pode ser negativo")
    else:
        formatted_key = format_pix_key(payload.pix_key, payload.pix_key_type)

    merchant_name = payload.merchant_name[:MAX_MERCHANT_NAME].upper()
    merchant_city = payload.merchant_city[:MAX_MERCHANT_CITY].upper()
    txid = payload.txid or DEFAULT_TXID

    # Payload Format Indicator (ID 00)
    pix_payload = tlv_field("00", "01")

    # Merchant Account Information - PIX (ID 26)
    merchant_account_info = tlv_field("00", PIX_GUI)
    merchant_account_info += tlv_field("01", formatted_key)
    if payload.description:
        merchant_account_info += tlv_field("02", payload.description[:MAX_DESCRIPTION])
    pix_payload += tlv_field("26", merchant_account_info)

    pix_payload += tlv_field("52", MERCHANT_CATEGORY_CODE)
    pix_payload += tlv_field("53", CURRENCY_BRL)

    # Sem ID 54 o pagador informa o valor
    amount = format_amount(payload.amount)
    if amount:
        pix_payload += tlv_field("54", amount)

    pix_payload += tlv_field("58", COUNTRY_CODE)
    pix_payload += tlv_field("59", merchant_name)
    pix_payload += tlv_field("60", merchant_city)

    # Additional Data Field Template (ID 62) - Reference Label
    pix_payload += tlv_field("62", tlv_field("05", txid))

    return pix_payload + CRC_PREFIX


def generate_pix_code(payload: PixPayload, strict: bool = False) -> str:
    """
    Gera o código PIX "copia e cola"

    Args:
        payload: Dados do recebedor e da cobrança
        strict: Se True valida a chave e o valor antes de montar

    Returns:
        Código BR Code pronto para QR Code

    Raises:
        MalformedPixKeyError: Apenas em modo estrito
    """
    pix_payload = build_payload(payload, strict=strict)
    pix_code = pix_payload + crc16_ccitt(pix_payload)

    logger.debug(
        f"PIX gerado - chave: {_mask_key(payload.pix_key)}, "
        f"valor: {format_amount(payload.amount) or 'livre'}, tamanho: {len(pix_code)}")
    return pix_code


def format_pix_key_for_display(key: str, key_type: Union[PixKeyType, str]) -> str:
    """Formata a chave para exibição (nunca usada na transmissão)"""
    if key_type == PixKeyType.CPF:
        return re.sub(r'(\d{3})(\d{3})(\d{3})(\d{2})', r'\1.\2.\3-\4',
                      _digits(key), count=1)
    if key_type == PixKeyType.CNPJ:
        return re.sub(r'(\d{2})(\d{3})(\d{3})(\d{4})(\d{2})', r'\1.\2.\3/\4-\5',
                      _digits(key), count=1)
    if key_type == PixKeyType.PHONE:
        phone = _digits(key)
        if len(phone) == 11:
            return re.sub(r'(\d{2})(\d{5})(\d{4})', r'(\1) \2-\3', phone, count=1)
        return key
    return key
