"""
Shared Groups Package

Splitting shared expenses, group balances and PIX payloads.
"""

from finledger.groups.balances import group_totals, member_balances
from finledger.groups.pix import build_pix_payload, crc16_ccitt
from finledger.groups.splits import (
    build_splits,
    custom_shares,
    equal_shares,
    percentage_shares,
    to_money,
)

__all__ = [
    "build_pix_payload",
    "build_splits",
    "crc16_ccitt",
    "custom_shares",
    "equal_shares",
    "group_totals",
    "member_balances",
    "percentage_shares",
    "to_money",
]
