"""Locale-aware formatting of month names and amounts.

Uses babel with the locale from settings (``LOCALE``, default ``es_MX``).

Example:
    >>> month_display_name(3, locale="es_MX")
    'Marzo'
    >>> format_amount(Decimal("1234.5"), locale="es_MX")
    '$1,234.50'
"""

import logging
from decimal import Decimal

from babel import Locale, UnknownLocaleError
from babel.dates import get_month_names
from babel.numbers import format_currency as babel_format_currency
from babel.numbers import format_decimal as babel_format_decimal
from babel.numbers import get_territory_currencies

from condo_ledger.config import get_settings

logger = logging.getLogger(__name__)

DEFAULT_LOCALE = "es_MX"
DEFAULT_CURRENCY = "MXN"


def resolve_locale(locale_str: str | None = None) -> str:
    """Validate a locale string, falling back to ``DEFAULT_LOCALE``.

    Args:
        locale_str: Locale to use; settings locale when None

    Returns:
        Valid locale string (e.g., 'es_MX')
    """
    locale_str = locale_str or get_settings().locale
    try:
        Locale.parse(locale_str)
        return locale_str
    except (UnknownLocaleError, ValueError) as e:
        logger.warning(f"Invalid LOCALE '{locale_str}': {e}. Falling back to '{DEFAULT_LOCALE}'")
        return DEFAULT_LOCALE


def currency_for_locale(locale_str: str) -> str:
    """Currency code of the locale's territory (e.g., 'MXN')."""
    try:
        territory = Locale.parse(locale_str).territory
        if territory:
            currencies = get_territory_currencies(territory)
            if currencies:
                return currencies[0]
    except (UnknownLocaleError, ValueError) as e:
        logger.warning(f"Could not derive currency from locale '{locale_str}': {e}")
    return DEFAULT_CURRENCY


def month_display_name(month: int, locale: str | None = None) -> str:
    """Capitalized stand-alone month name, e.g. 'Enero'."""
    names = get_month_names("wide", context="stand-alone", locale=resolve_locale(locale))
    name = names[month]
    return name[:1].upper() + name[1:]


def format_amount(amount: Decimal, include_symbol: bool = True, locale: str | None = None) -> str:
    """Format a monetary amount according to locale."""
    locale_str = resolve_locale(locale)
    if include_symbol:
        return babel_format_currency(amount, currency_for_locale(locale_str), locale=locale_str)
    return babel_format_decimal(amount, format="#,##0.00", locale=locale_str)


__all__ = ["resolve_locale", "currency_for_locale", "month_display_name", "format_amount"]
