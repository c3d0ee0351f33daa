"""
Tax rate table - per-category sales tax lookup.

One TaxRateTable is created by the app factory and passed to the cart
builder; it is refreshed from the categories table at startup and by the
`flask reload-tax-rates` command.
"""
import logging
import threading
from decimal import Decimal, InvalidOperation
from typing import Dict, Iterable, Mapping, Optional, Union

from ravenpos.exceptions import ValidationError

logger = logging.getLogger(__name__)

FALLBACK_CATEGORY = 'Other'

DEFAULT_TAX_RATES = {
    'Clothing': Decimal('0.053'),
    'Accessories': Decimal('0.053'),
    'Collectibles': Decimal('0.053'),
    'Books': Decimal('0.0'),  # Often tax-exempt
    'Furniture': Decimal('0.053'),
    'Electronics': Decimal('0.053'),
    'Art': Decimal('0.053'),
    'Jewelry': Decimal('0.053'),
    'Vintage': Decimal('0.053'),
    'Other': Decimal('0.053'),
}


def _to_rate(value: Union[Decimal, float, int, str]) -> Decimal:
    """Parse a tax rate, rejecting anything outside [0, 1]."""
    try:
        rate = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f'Invalid tax rate: {value!r}')
    if not rate.is_finite() or rate < 0 or rate > 1:
        raise ValidationError(f'Tax rate must be between 0 and 1, got {value}')
    return rate


class TaxRateTable:
    """
    Category name -> tax rate, with a fallback for unknown categories.

    Writers build a new mapping and swap it in under a lock; readers only
    dereference the current mapping, so a reader sees either the old or the
    new rate for a category. Last update wins.
    """

    def __init__(self, rates: Optional[Mapping[str, Union[Decimal, float, str]]] = None):
        self._lock = threading.Lock()
        initial = DEFAULT_TAX_RATES if rates is None else rates
        self._rates: Dict[str, Decimal] = {name: _to_rate(rate) for name, rate in initial.items()}
        if FALLBACK_CATEGORY not in self._rates:
            self._rates[FALLBACK_CATEGORY] = DEFAULT_TAX_RATES[FALLBACK_CATEGORY]

    def rate_for(self, category: Optional[str]) -> Decimal:
        """Return the rate for a category, or the 'Other' rate if unknown."""
        rates = self._rates
        if category in rates:
            return rates[category]
        return rates[FALLBACK_CATEGORY]

    def update_rates(self, entries: Union[Mapping[str, Union[Decimal, float, str]], Iterable]) -> None:
        """
        Overwrite rates from a configuration source.

        Accepts a mapping of name -> rate, or an iterable of objects/dicts
        exposing `name` and `tax_rate` (e.g. Category rows). Entries are
        validated before anything is applied; there is no removal.
        """
        if isinstance(entries, Mapping):
            pairs = list(entries.items())
        else:
            pairs = [_category_pair(entry) for entry in entries]

        parsed = [(name, _to_rate(rate)) for name, rate in pairs]

        with self._lock:
            updated = dict(self._rates)
            updated.update(parsed)
            self._rates = updated

        logger.info(f"[TAX] Updated {len(parsed)} tax rate(s)")

    def snapshot(self) -> Dict[str, Decimal]:
        """Copy of the current rates."""
        return dict(self._rates)


def _category_pair(entry):
    if isinstance(entry, Mapping):
        return entry['name'], entry['tax_rate']
    return entry.name, entry.tax_rate


def load_from_categories(session, table: TaxRateTable) -> int:
    """Refresh the table from the categories table. Returns the row count."""
    from ravenpos.models import Category

    categories = session.query(Category).order_by(Category.name).all()
    table.update_rates(categories)
    return len(categories)


def get_tax_rates() -> TaxRateTable:
    """Tax table of the current Flask application."""
    from flask import current_app
    return current_app.extensions['tax_rates']
