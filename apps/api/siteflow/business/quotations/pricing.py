"""Totals for quotations and invoices.

Line totals are ``quantity * unit_price``; markup is applied on top of each
line before tax, and tax is charged per line at the line's own rate.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from siteflow.business.quotations.schemas import LineItem


_CENTS = Decimal("0.01")


class Priced(Protocol):
    items: list[LineItem]
    markup_rate: Decimal
    subtotal: Decimal
    tax_total: Decimal
    grand_total: Decimal


def q(value: Decimal) -> Decimal:
    return Decimal(value).quantize(_CENTS, rounding=ROUND_HALF_UP)


def recalculate(document: Priced) -> None:
    multiplier = Decimal("1") + Decimal(document.markup_rate)
    subtotal = Decimal("0")
    tax_total = Decimal("0")
    for item in document.items:
        item.line_total = q(Decimal(item.quantity) * Decimal(item.unit_price))
        subtotal += item.line_total
        tax_total += item.line_total * multiplier * Decimal(item.tax_rate)

    document.subtotal = q(subtotal)
    document.tax_total = q(tax_total)
    document.grand_total = q(subtotal * multiplier + tax_total)
