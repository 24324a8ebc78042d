"""Custom exceptions for the itemized statement engine."""
from decimal import Decimal


class ArchitrackError(Exception):
    """Base exception for all application errors."""
    code = 'INTERNAL_ERROR'

    def __init__(self, message="An internal error occurred", status_code=500, details=None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details

    def to_dict(self):
        rv = {
            'status': 'error',
            'code': self.code,
            'message': self.message,
        }
        if self.details is not None:
            rv['details'] = self.details
        return rv


class ValidationError(ArchitrackError):
    """Raised when an inbound payload is missing or malformed."""
    code = 'VALIDATION_ERROR'

    def __init__(self, message="Invalid request", details=None):
        super().__init__(message, 400, details)


class NotFoundError(ArchitrackError):
    """Exception raised when a resource is not found."""
    code = 'NOT_FOUND'

    def __init__(self, message="Resource not found", details=None):
        super().__init__(message, 404, details)


class ItemizedStatementNotFoundError(NotFoundError):
    code = 'ITEMIZED_STATEMENT_NOT_FOUND'

    def __init__(self, statement_id):
        self.statement_id = statement_id
        super().__init__(f'Itemized statement not found: {statement_id}')


class QuantityTableNotFoundError(NotFoundError):
    code = 'QUANTITY_TABLE_NOT_FOUND'

    def __init__(self, quantity_table_id):
        self.quantity_table_id = quantity_table_id
        super().__init__(f'Quantity table not found: {quantity_table_id}')


class EmptyQuantityItemsError(ArchitrackError):
    """Raised when the chosen quantity table has no items to aggregate."""
    code = 'EMPTY_QUANTITY_ITEMS'

    def __init__(self, quantity_table_id=None):
        self.quantity_table_id = quantity_table_id
        super().__init__(
            'The selected quantity table has no items',
            400,
            {'quantityTableId': quantity_table_id}
        )


class DuplicateNameError(ArchitrackError):
    """Raised when a statement name is already used within the project."""
    code = 'DUPLICATE_ITEMIZED_STATEMENT_NAME'

    def __init__(self, name, project_id):
        self.duplicate_name = name
        self.project_id = project_id
        super().__init__(
            'An itemized statement with the same name already exists',
            409,
            {'name': name, 'projectId': project_id}
        )


class ConflictError(ArchitrackError):
    """Raised when a write carries a stale version token."""
    code = 'ITEMIZED_STATEMENT_CONFLICT'

    def __init__(self, expected_version=None, actual_version=None):
        self.expected_version = expected_version
        self.actual_version = actual_version
        details = None
        if expected_version is not None or actual_version is not None:
            details = {'expectedVersion': expected_version, 'actualVersion': actual_version}
        super().__init__(
            'The statement was modified by another user. Reload and try again.',
            409,
            details
        )


class QuantityOverflowError(ArchitrackError):
    """Raised when an aggregated quantity leaves the storable range."""
    code = 'QUANTITY_OVERFLOW'

    def __init__(self, actual_value, min_allowed=Decimal('-999999.99'), max_allowed=Decimal('9999999.99')):
        self.actual_value = actual_value
        self.min_allowed = min_allowed
        self.max_allowed = max_allowed
        super().__init__(
            f'Aggregated quantity {actual_value} is outside the allowed range '
            f'({min_allowed} to {max_allowed})',
            422,
            {
                'actualValue': str(actual_value),
                'minAllowed': str(min_allowed),
                'maxAllowed': str(max_allowed),
            }
        )


class ItemLimitExceededError(ArchitrackError):
    """Raised when aggregation yields more rows than a statement may hold."""
    code = 'ITEMIZED_STATEMENT_ITEM_LIMIT_EXCEEDED'

    def __init__(self, actual_count, max_count=2000):
        self.actual_count = actual_count
        self.max_count = max_count
        super().__init__(
            f'Itemized statement would contain {actual_count} rows (maximum {max_count})',
            422,
            {'actualCount': actual_count, 'maxCount': max_count}
        )


class ExportFailedError(ArchitrackError):
    """Raised when a spreadsheet export cannot be produced."""
    code = 'EXPORT_FAILED'

    def __init__(self, message='Spreadsheet export failed'):
        super().__init__(message, 500)


class CopyFailedError(ArchitrackError):
    """Raised when clipboard text cannot be handed to the copy sink."""
    code = 'COPY_FAILED'

    def __init__(self, message='Copy to clipboard failed'):
        super().__init__(message, 500)
