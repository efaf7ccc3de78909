"""
Currency conversion against a static rate table.

Rates are expressed as units of each currency per one unit of the base
currency (BHD by default).
"""
import logging
from typing import Optional

from ..config.settings import DEFAULT_CURRENCY_RATES

logger = logging.getLogger(__name__)


def get_rate(from_currency: str, to_currency: str, rates: Optional[dict[str, float]] = None) -> float:
    """Conversion rate from ``from_currency`` to ``to_currency``."""
    from_code = str(from_currency).strip().upper()
    to_code = str(to_currency).strip().upper()

    if from_code == to_code:
        return 1.0

    table = rates if rates is not None else DEFAULT_CURRENCY_RATES

    for code in (from_code, to_code):
        if code not in table:
            logger.warning("No exchange rate for %s, treating it as 1.0", code)

    from_rate = table.get(from_code, 1.0)
    to_rate = table.get(to_code, 1.0)
    return to_rate / from_rate


def convert(amount: float, from_currency: str, to_currency: str,
            rates: Optional[dict[str, float]] = None) -> float:
    """Convert ``amount`` between two currencies."""
    return amount * get_rate(from_currency, to_currency, rates)
