"""Formatting utilities for currency display."""

from __future__ import annotations

from decimal import Decimal
from typing import Union

Number = Union[Decimal, float, int]


def format_currency(amount: Number, include_sign: bool = True, symbol: str = '$') -> str:
    """Format an amount with thousands separators and two decimals.

    Negative amounts put the minus before the symbol.

    Example:
        >>> format_currency(Decimal('-1234.5'))
        '-$1,234.50'
        >>> format_currency(1234.56, include_sign=False)
        '1,234.56'
    """
    value = Decimal(str(amount))
    formatted = f"{abs(value):,.2f}"
    prefix = '-' if value < 0 else ''
    return f"{prefix}{symbol}{formatted}" if include_sign else f"{prefix}{formatted}"


def escape_dollar_for_markdown(amount: Number) -> str:
    """Format an amount and escape the dollar sign for Streamlit markdown."""
    return format_currency(amount).replace("$", "\\$")
