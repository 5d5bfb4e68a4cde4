#!/usr/bin/env python3
"""
Decodificador e validador de código PIX (BR Code / EMV)
"""

import re
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, Any, Optional

from pix_generator import CRC_PREFIX, crc16_ccitt

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ["00", "26", "52", "53", "58", "59", "60"]
MIN_LENGTH = 50
MAX_LENGTH = 512

# ASCII e Latin-1 imprimíveis (nomes e cidades acentuados, ex.: TIMBÓ)
VALID_CHARS = re.compile(r'^[\x20-\x7E\xA0-\xFF]+$')


class PixDecodeError(ValueError):
    """Estrutura EMV inválida"""


@dataclass
class DecodedPixCode:
    """Campos extraídos de um código PIX"""
    fields: Dict[str, str]
    merchant_account: Dict[str, str] = field(default_factory=dict)
    additional_data: Dict[str, str] = field(default_factory=dict)
    crc_valid: bool = False

    @property
    def pix_key(self) -> Optional[str]:
        return self.merchant_account.get("01")

    @property
    def description(self) -> Optional[str]:
        return self.merchant_account.get("02")

    @property
    def merchant_name(self) -> str:
        return self.fields.get("59", "")

    @property
    def merchant_city(self) -> str:
        return self.fields.get("60", "")

    @property
    def amount(self) -> Optional[str]:
        return self.fields.get("54")

    @property
    def txid(self) -> Optional[str]:
        return self.additional_data.get("05")

    @property
    def crc(self) -> str:
        return self.fields.get("63", "")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payload_format": self.fields.get("00", ""),
            "pix_key": self.pix_key,
            "description": self.description,
            "merchant_category": self.fields.get("52", ""),
            "currency": self.fields.get("53", ""),
            "amount": self.amount,
            "country_code": self.fields.get("58", ""),
            "merchant_name": self.merchant_name,
            "merchant_city": self.merchant_city,
            "txid": self.txid,
            "crc": self.crc,
            "crc_valid": self.crc_valid,
            "all_fields": list(self.fields.keys()),
        }


def parse_tlv(data: str) -> "OrderedDict[str, str]":
    """
    Lê campos TLV consecutivos (ID 2 dígitos + tamanho 2 dígitos + valor)

    Raises:
        PixDecodeError: Se algum campo estiver truncado ou malformado
    """
    fields = OrderedDict()
    pos = 0

    while pos < len(data):
        if pos + 4 > len(data):
            raise PixDecodeError(f"Campo truncado na posição {pos}")

        tag = data[pos:pos + 2]
        raw_length = data[pos + 2:pos + 4]
        if not tag.isdigit() or not raw_length.isdigit():
            raise PixDecodeError(f"ID/tamanho inválido na posição {pos}: {tag}{raw_length}")

        length = int(raw_length)
        pos += 4
        if pos + length > len(data):
            raise PixDecodeError(f"Campo {tag} excede o fim do código")

        fields[tag] = data[pos:pos + length]
        pos += length

    return fields


def check_crc16(pix_code: str) -> bool:
    """
    Verifica CRC16 do código PIX
    """
    if len(pix_code) < 8 or pix_code[-8:-4] != CRC_PREFIX:
        return False

    # CRC cobre tudo até "6304", inclusive
    calculated_crc = crc16_ccitt(pix_code[:-4])
    return pix_code[-4:].upper() == calculated_crc


def decode_pix_code(pix_code: str) -> DecodedPixCode:
    """
    Decodifica o código PIX em campos

    Args:
        pix_code: Código PIX "copia e cola"

    Returns:
        DecodedPixCode com campos de topo e templates 26 e 62

    Raises:
        PixDecodeError: Se a estrutura EMV for inválida
    """
    pix_code = pix_code.strip()
    fields = parse_tlv(pix_code)

    merchant_account = parse_tlv(fields["26"]) if "26" in fields else OrderedDict()
    additional_data = parse_tlv(fields["62"]) if "62" in fields else OrderedDict()

    return DecodedPixCode(
        fields=dict(fields),
        merchant_account=dict(merchant_account),
        additional_data=dict(additional_data),
        crc_valid=check_crc16(pix_code),
    )


def validate_pix_code(pix_code: str) -> dict:
    """
    Valida estrutura do código PIX segundo padrão EMV/BR Code

    Args:
        pix_code: Código PIX para validar

    Returns:
        Dict com resultado da validação
    """
    if not pix_code or not isinstance(pix_code, str):
        return {"valid": False, "error": "Código PIX vazio ou inválido"}

    pix_code = pix_code.strip().replace('\n', '')

    if not VALID_CHARS.match(pix_code):
        invalid = sorted(set(c for c in pix_code if not VALID_CHARS.match(c)))
        return {"valid": False, "error": f"Código PIX contém caracteres inválidos: {invalid}"}

    if len(pix_code) < MIN_LENGTH:
        return {"valid": False, "error": f"Código PIX muito curto: {len(pix_code)} caracteres"}

    if len(pix_code) > MAX_LENGTH:
        return {"valid": False, "error": f"Código PIX muito longo: {len(pix_code)} caracteres"}

    if not pix_code.startswith("0002"):
        return {"valid": False, "error": "Código PIX deve começar com '0002'"}

    if not re.match(r'^[0-9A-Fa-f]{4}$', pix_code[-4:]):
        return {"valid": False, "error": "CRC16 inválido no final do código"}

    try:
        decoded = decode_pix_code(pix_code)
    except PixDecodeError as e:
        logger.warning(f"⚠️ Estrutura EMV inválida: {e}")
        return {"valid": False, "error": f"Erro na estrutura EMV: {e}"}

    missing_fields = [tag for tag in REQUIRED_FIELDS if tag not in decoded.fields]
    if missing_fields:
        return {"valid": False, "error": f"Campos obrigatórios ausentes: {missing_fields}"}

    if not decoded.crc_valid:
        return {
            "valid": False,
            "error": f"CRC16 não confere: {decoded.crc}",
            **decoded.to_dict(),
        }

    return {"valid": True, "fields_count": len(decoded.fields), **decoded.to_dict()}
