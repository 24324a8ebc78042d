"""
Filter -> sort -> paginate pipeline over itemized statement rows.

Everything here is a pure function of (rows, query state). The query state is
an immutable value, so the same state over the same rows always yields the
same page, and the export path can reuse ``select_rows`` to reproduce exactly
what a page listing shows.
"""
import math
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from architrack.services.pivot_service import default_sort_key, normalize_text
from architrack.utils.formatters import format_quantity

FILTER_COLUMNS = ('custom_category', 'work_type', 'name', 'specification', 'unit')
SORT_COLUMNS = FILTER_COLUMNS + ('quantity',)

ASC = 'asc'
DESC = 'desc'
SORT_DIRECTIONS = (ASC, DESC)

ROW_PAGE_SIZE = 50
STATEMENT_PAGE_SIZE = 20


@dataclass(frozen=True)
class StatementRow:
    """Detached, read-only copy of a stored statement row."""
    id: Optional[int]
    custom_category: Optional[str]
    work_type: Optional[str]
    name: Optional[str]
    specification: Optional[str]
    unit: Optional[str]
    quantity: Decimal
    display_order: int = 0

    @classmethod
    def from_model(cls, item) -> 'StatementRow':
        return cls(
            id=item.id,
            custom_category=item.custom_category,
            work_type=item.work_type,
            name=item.name,
            specification=item.specification,
            unit=item.unit,
            quantity=Decimal(item.quantity),
            display_order=item.display_order,
        )

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'customCategory': self.custom_category,
            'workType': self.work_type,
            'name': self.name,
            'specification': self.specification,
            'unit': self.unit,
            'quantity': format_quantity(self.quantity),
            'displayOrder': self.display_order,
        }


@dataclass(frozen=True)
class SortState:
    """Single active sort column, or none (default pivot order)."""
    column: Optional[str] = None
    direction: str = ASC

    def __post_init__(self):
        if self.column is not None and self.column not in SORT_COLUMNS:
            raise ValueError(f'Unsortable column: {self.column}')
        if self.direction not in SORT_DIRECTIONS:
            raise ValueError(f'Invalid sort direction: {self.direction}')

    @property
    def is_active(self) -> bool:
        return self.column is not None

    def toggled(self, column: str) -> 'SortState':
        """State after clicking a column header."""
        if self.column == column:
            return SortState(column, DESC if self.direction == ASC else ASC)
        return SortState(column, ASC)


@dataclass(frozen=True)
class FilterState:
    """Per-column substring filters, kept in column order. Empty values are dropped."""
    values: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, str]]) -> 'FilterState':
        mapping = dict(mapping or {})
        unknown = set(mapping) - set(FILTER_COLUMNS)
        if unknown:
            raise ValueError(f'Unfilterable columns: {", ".join(sorted(unknown))}')
        return cls(tuple(
            (column, mapping[column])
            for column in FILTER_COLUMNS
            if mapping.get(column)
        ))

    def with_value(self, column: str, value: str) -> 'FilterState':
        mapping = dict(self.values)
        mapping[column] = value
        return FilterState.from_mapping(mapping)

    def as_dict(self) -> Dict[str, str]:
        return dict(self.values)


@dataclass(frozen=True)
class QueryState:
    filters: FilterState = field(default_factory=FilterState)
    sort: SortState = field(default_factory=SortState)


@dataclass(frozen=True)
class QueryResult:
    rows: Tuple[StatementRow, ...]
    total_count: int
    total_pages: int
    current_page: int
    page_size: int

    def to_dict(self) -> Dict:
        return {
            'rows': [row.to_dict() for row in self.rows],
            'totalCount': self.total_count,
            'totalPages': self.total_pages,
            'currentPage': self.current_page,
            'pageSize': self.page_size,
        }


def apply_filters(rows: Iterable, filters: FilterState) -> List:
    """Case-insensitive substring match; all active filters must hold."""
    needles = [(column, value.casefold()) for column, value in filters.values]
    if not needles:
        return list(rows)
    return [
        row for row in rows
        if all(needle in normalize_text(getattr(row, column)).casefold() for column, needle in needles)
    ]


def apply_sort(rows: Iterable, sort: SortState) -> List:
    """Stable sort; ties keep their default pivot order in both directions."""
    rows = sorted(rows, key=default_sort_key)
    if not sort.is_active:
        return rows

    if sort.column == 'quantity':
        key = lambda row: Decimal(row.quantity)
    else:
        key = lambda row: normalize_text(getattr(row, sort.column))
    # reverse=True keeps equal elements in their original order
    return sorted(rows, key=key, reverse=sort.direction == DESC)


def select_rows(rows: Iterable, state: QueryState) -> List:
    """Filter then sort, without pagination. Shared by page listing and export."""
    return apply_sort(apply_filters(rows, state.filters), state.sort)


def paginate(rows: Sequence, page: int, page_size: int = ROW_PAGE_SIZE) -> QueryResult:
    """
    Slice one 1-indexed page.

    A page past the end is an empty page, not an error.
    """
    if page < 1:
        raise ValueError('page must be >= 1')
    if page_size < 1:
        raise ValueError('page_size must be >= 1')

    total_count = len(rows)
    total_pages = math.ceil(total_count / page_size)
    start = (page - 1) * page_size
    return QueryResult(
        rows=tuple(rows[start:start + page_size]),
        total_count=total_count,
        total_pages=total_pages,
        current_page=page,
        page_size=page_size,
    )


def run_query(rows: Iterable, state: QueryState, page: int = 1, page_size: int = ROW_PAGE_SIZE) -> QueryResult:
    """Filter -> sort -> paginate."""
    return paginate(select_rows(rows, state), page, page_size)
