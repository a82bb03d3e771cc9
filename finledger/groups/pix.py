"""
PIX BR Code Payloads

Builds the "copia e cola" text of a static PIX QR code: an EMV merchant
presented payload made of ID / length / value fields, closed by a
CRC16-CCITT checksum over everything before it.

Field layout:
    00 payload format indicator ("01")
    26 merchant account (GUI "BR.GOV.BCB.PIX", key, optional description)
    52 merchant category code ("0000")
    53 currency (986 = BRL)
    54 amount (optional, "0.00" format)
    58 country ("BR")
    59 receiver name (max 25)
    60 receiver city (max 15)
    62 additional data (05 = transaction id, "***" when none)
    63 CRC16
"""

import re
import unicodedata
from decimal import Decimal
from typing import Optional

from finledger.errors import ValidationError


PIX_GUI = "BR.GOV.BCB.PIX"
TXID_PATTERN = re.compile(r"^[A-Za-z0-9]{1,25}$")


def crc16_ccitt(payload: str) -> str:
    """CRC16-CCITT (poly 0x1021, init 0xFFFF), as 4 uppercase hex digits."""
    crc = 0xFFFF
    for byte in payload.encode("utf-8"):
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return f"{crc:04X}"


def _field(field_id: str, value: str) -> str:
    if len(value) > 99:
        raise ValidationError.single(
            "pix", "too_long", f"PIX field {field_id} is longer than 99 characters."
        )
    return f"{field_id}{len(value):02d}{value}"


def _plain(text: str, limit: int) -> str:
    """Uppercase ASCII without accents, cut to ``limit``."""
    normalized = unicodedata.normalize("NFKD", text)
    ascii_text = normalized.encode("ascii", "ignore").decode("ascii")
    return ascii_text.upper().strip()[:limit]


def build_pix_payload(
    pix_key: str,
    merchant_name: str,
    merchant_city: str,
    amount: Optional[Decimal] = None,
    txid: Optional[str] = None,
    description: Optional[str] = None,
) -> str:
    """
    Build a static BR Code payload.

    Raises:
        ValidationError: If the key is empty, the amount is not positive,
            the transaction id is not 1-25 letters/digits, or a field
            would not fit
    """
    key = pix_key.strip()
    if not key:
        raise ValidationError.single("pix_key", "missing", "Enter a PIX key.")
    if amount is not None and amount <= 0:
        raise ValidationError.single("amount", "invalid_value", "Amount must be greater than zero.")
    if txid is not None and not TXID_PATTERN.match(txid):
        raise ValidationError.single(
            "txid", "invalid_format", "Transaction id must be 1 to 25 letters or digits."
        )

    account = _field("00", PIX_GUI) + _field("01", key)
    if description:
        account += _field("02", description.strip())

    payload = (
        _field("00", "01")
        + _field("26", account)
        + _field("52", "0000")
        + _field("53", "986")
        + (_field("54", f"{amount:.2f}") if amount is not None else "")
        + _field("58", "BR")
        + _field("59", _plain(merchant_name, 25))
        + _field("60", _plain(merchant_city, 15))
        + _field("62", _field("05", txid or "***"))
        + "6304"
    )
    return payload + crc16_ccitt(payload)
