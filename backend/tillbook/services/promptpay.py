"""
PromptPay payment payloads (Thai EMVCo merchant-presented QR).

The payload is a flat sequence of tag/length/value fields closed by a
CRC-16/CCITT-FALSE checksum over everything before it, including the
"6304" header of the checksum field itself.
"""

from __future__ import annotations

import re

from ..time_utils import cents_to_str


PROMPTPAY_AID = "A000000677010111"
CURRENCY_THB = "764"
COUNTRY_TH = "TH"

_TARGET_PHONE = "01"
_TARGET_NATIONAL_ID = "02"
_TARGET_EWALLET = "03"


class PromptPayError(ValueError):
    """Raised for a recipient id or amount that cannot be encoded."""


def _tlv(tag: str, value: str) -> str:
    if len(value) > 99:
        raise PromptPayError(f"Field {tag} is too long")
    return f"{tag}{len(value):02d}{value}"


def crc16_ccitt(data: bytes) -> int:
    crc = 0xFFFF
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc


def _format_target(recipient: str) -> tuple[str, str]:
    digits = re.sub(r"\D", "", recipient or "")
    if len(digits) == 13:
        return _TARGET_NATIONAL_ID, digits
    if len(digits) == 15:
        return _TARGET_EWALLET, digits
    if len(digits) < 9 or len(digits) > 10:
        raise PromptPayError("PromptPay id must be a phone number, national id or e-wallet id")
    # 0812345678 -> 0066812345678
    local = digits[-9:]
    return _TARGET_PHONE, ("66" + local).rjust(13, "0")


def build_payload(recipient: str, amount_cents: int | None = None) -> str:
    """Build the QR text for paying `amount_cents` to a PromptPay id."""
    target_tag, target = _format_target(recipient)

    merchant = _tlv("00", PROMPTPAY_AID) + _tlv(target_tag, target)
    payload = _tlv("00", "01")
    # 11 = static (reusable), 12 = dynamic (one amount)
    payload += _tlv("01", "12" if amount_cents is not None else "11")
    payload += _tlv("29", merchant)
    payload += _tlv("53", CURRENCY_THB)
    if amount_cents is not None:
        if amount_cents < 0:
            raise PromptPayError("Amount must be >= 0")
        payload += _tlv("54", cents_to_str(amount_cents))
    payload += _tlv("58", COUNTRY_TH)
    payload += "6304"
    return payload + f"{crc16_ccitt(payload.encode('ascii')):04X}"


def verify_payload(payload: str) -> bool:
    """True when the trailing checksum matches the body."""
    if len(payload) < 8 or payload[-8:-4] != "6304":
        return False
    body, checksum = payload[:-4], payload[-4:]
    return f"{crc16_ccitt(body.encode('ascii')):04X}" == checksum.upper()
