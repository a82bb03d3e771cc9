"""Display formatting for amounts and dates (pt-BR conventions)."""

from datetime import date


def format_currency(value: float, symbol: str = "R$") -> str:
    """
    Format an amount the Brazilian way.

    1234.5 -> "R$ 1.234,50", -80 -> "-R$ 80,00"
    """
    sign = "-" if value < 0 else ""
    # Format with US separators, then swap them
    text = f"{abs(value):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{sign}{symbol} {text}"


def format_date_br(value: date) -> str:
    """dd/mm/yyyy"""
    return value.strftime("%d/%m/%Y")


def format_day_month(value: date) -> str:
    """dd/mm, used on the timeline axis."""
    return value.strftime("%d/%m")
