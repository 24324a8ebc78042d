"""
Pivot aggregation of quantity items into itemized statement rows.

Items are grouped on a five-field key (custom category, work type, name,
specification, unit) and their quantities are summed with ``Decimal``.
``None`` and ``''`` are the same key value.
"""
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple

from architrack.exceptions import EmptyQuantityItemsError, QuantityOverflowError

GROUP_KEY_FIELDS = ('custom_category', 'work_type', 'name', 'specification', 'unit')
DEFAULT_SORT_FIELDS = ('custom_category', 'work_type', 'name', 'specification')

QUANTITY_MIN = Decimal('-999999.99')
QUANTITY_MAX = Decimal('9999999.99')
QUANTITY_STEP = Decimal('0.01')

GroupKey = Tuple[str, str, str, str, str]


@dataclass(frozen=True)
class AggregatedRow:
    """One grouped row. Empty key fields are ``None``."""
    custom_category: Optional[str]
    work_type: Optional[str]
    name: Optional[str]
    specification: Optional[str]
    unit: Optional[str]
    quantity: Decimal


@dataclass(frozen=True)
class AggregationResult:
    rows: List[AggregatedRow]
    source_item_count: int


def normalize_text(value) -> str:
    """Canonical empty value for key comparison."""
    if value is None:
        return ''
    return str(value)


def to_decimal(value) -> Decimal:
    if value is None:
        return Decimal('0')
    if isinstance(value, Decimal):
        return value
    # str() first so floats keep their shortest repr instead of binary noise
    return Decimal(str(value))


def quantize_quantity(value: Decimal) -> Decimal:
    return value.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)


def generate_group_key(item) -> GroupKey:
    """Return the normalized 5-tuple group key of an item."""
    return tuple(normalize_text(getattr(item, field)) for field in GROUP_KEY_FIELDS)


def default_sort_key(row) -> Tuple[str, str, str, str]:
    """Default row order: category, work type, name, specification ascending."""
    return tuple(normalize_text(getattr(row, field)) for field in DEFAULT_SORT_FIELDS)


def _check_bounds(running_sum: Decimal):
    if running_sum < QUANTITY_MIN or running_sum > QUANTITY_MAX:
        raise QuantityOverflowError(running_sum, QUANTITY_MIN, QUANTITY_MAX)


def aggregate_items(items: Iterable, quantity_table_id=None) -> AggregationResult:
    """
    Group items on their normalized key and sum quantities.

    The running sum of a group is checked against the allowed range after
    every single accumulation, so an intermediate excursion aborts as well.

    Args:
        items: Ordered quantity items (objects exposing the key fields and ``quantity``)
        quantity_table_id: Source table id, only used for error reporting

    Returns:
        AggregationResult with rows in default order

    Raises:
        EmptyQuantityItemsError: If ``items`` is empty
        QuantityOverflowError: If any running sum leaves [-999999.99, 9999999.99]
    """
    items = list(items)
    if not items:
        raise EmptyQuantityItemsError(quantity_table_id)

    sums = {}
    for item in items:
        key = generate_group_key(item)
        running_sum = sums.get(key, Decimal('0')) + to_decimal(item.quantity)
        _check_bounds(running_sum)
        sums[key] = running_sum

    rows = []
    for key, total in sums.items():
        quantity = quantize_quantity(total)
        _check_bounds(quantity)
        rows.append(AggregatedRow(*(value or None for value in key), quantity=quantity))

    # sorted() is stable: equal default keys keep first-seen order
    rows = sorted(rows, key=default_sort_key)
    return AggregationResult(rows=rows, source_item_count=len(items))
