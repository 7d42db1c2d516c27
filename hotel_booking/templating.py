from decimal import Decimal
from pathlib import Path

from fastapi.templating import Jinja2Templates

from .config import settings

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"


def money_filter(amount, currency: str | None = None) -> str:
    """A Jinja2 filter rendering an amount with two decimals and the currency code."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"))
    return f"{value:,} {currency or settings.CURRENCY}"


# Create a single, shared Jinja2Templates instance
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
templates.env.filters["money"] = money_filter
