"""
Request schemas for the itemized statement API.

Inbound payloads and query strings are validated into these models before
any service call. Unknown fields are rejected. External names are camelCase,
attribute names are snake_case; both are accepted on input.
"""
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from architrack.exceptions import ValidationError
from architrack.services.query_service import (
    FilterState, QueryState, SortState, FILTER_COLUMNS, ROW_PAGE_SIZE, STATEMENT_PAGE_SIZE
)

SortColumn = Literal['custom_category', 'work_type', 'name', 'specification', 'unit', 'quantity']
SortDirection = Literal['asc', 'desc']

MAX_ROW_PAGE_SIZE = 2000


class StrictModel(BaseModel):
    model_config = ConfigDict(
        extra='forbid',
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class CreateItemizedStatementRequest(StrictModel):
    """Body of POST /projects/<project_id>/itemized-statements."""
    name: str = Field(min_length=1, max_length=200)
    quantity_table_id: int = Field(gt=0)

    @field_validator('name', mode='before')
    @classmethod
    def strip_name(cls, value):
        if isinstance(value, str):
            return value.strip()
        return value


class DeleteItemizedStatementRequest(StrictModel):
    """Body of DELETE /itemized-statements/<id>."""
    version_token: int = Field(ge=1)


class _RowSelection(StrictModel):
    """Filter and sort fields shared by row queries and exports."""
    custom_category: Optional[str] = Field(default=None, max_length=200)
    work_type: Optional[str] = Field(default=None, max_length=200)
    name: Optional[str] = Field(default=None, max_length=200)
    specification: Optional[str] = Field(default=None, max_length=200)
    unit: Optional[str] = Field(default=None, max_length=200)
    sort_column: Optional[SortColumn] = None
    sort_direction: SortDirection = 'asc'

    @model_validator(mode='before')
    @classmethod
    def drop_blank_values(cls, data):
        # Query strings send blank inputs as ''
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value != ''}
        return data

    @field_validator('sort_column', mode='before')
    @classmethod
    def snake_case_sort_column(cls, value):
        if isinstance(value, str):
            for column in FILTER_COLUMNS:
                if value == to_camel(column):
                    return column
        return value

    def to_query_state(self) -> QueryState:
        filters = FilterState.from_mapping({
            column: getattr(self, column) for column in FILTER_COLUMNS
        })
        return QueryState(filters=filters, sort=SortState(self.sort_column, self.sort_direction))


class RowQueryRequest(_RowSelection):
    """Query string of GET /itemized-statements/<id>/rows."""
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=ROW_PAGE_SIZE, ge=1, le=MAX_ROW_PAGE_SIZE)


class SpreadsheetExportRequest(_RowSelection):
    format: Literal['spreadsheet']


class ClipboardExportRequest(_RowSelection):
    format: Literal['clipboard']


ExportRequest = Annotated[
    Union[SpreadsheetExportRequest, ClipboardExportRequest],
    Field(discriminator='format'),
]
export_request_adapter = TypeAdapter(ExportRequest)


class StatementListQuery(StrictModel):
    """Query string of GET /projects/<project_id>/itemized-statements."""
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=STATEMENT_PAGE_SIZE, ge=1, le=100)
    search: Optional[str] = Field(default=None, max_length=200)
    sort: Literal['createdAt', 'name'] = 'createdAt'
    order: SortDirection = 'desc'

    @model_validator(mode='before')
    @classmethod
    def drop_blank_values(cls, data):
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value != ''}
        return data


class LatestSummaryQuery(StrictModel):
    limit: int = Field(default=2, ge=1, le=10)


def _error_details(exc: PydanticValidationError):
    return [
        {
            'field': '.'.join(str(part) for part in error['loc']),
            'message': error['msg'],
            'type': error['type'],
        }
        for error in exc.errors(include_url=False)
    ]


def parse_request(schema, data: Optional[Dict[str, Any]]):
    """
    Validate ``data`` into ``schema`` (a model class or a TypeAdapter).

    Raises:
        ValidationError: With the pydantic error list in ``details``
    """
    data = data if data is not None else {}
    try:
        if isinstance(schema, TypeAdapter):
            return schema.validate_python(data)
        return schema.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError('Invalid request', details=_error_details(e)) from e
