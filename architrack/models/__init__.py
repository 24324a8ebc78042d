"""Models package - exports all SQLAlchemy models."""
from architrack.models.project import Project
from architrack.models.quantity_table import QuantityTable, QuantityGroup, QuantityItem
from architrack.models.itemized_statement import ItemizedStatement, ItemizedStatementItem
from architrack.models.audit_log import AuditLog, AuditAction

__all__ = [
    'Project',
    # Source documents (read-only for this engine)
    'QuantityTable', 'QuantityGroup', 'QuantityItem',
    # Generated snapshots
    'ItemizedStatement', 'ItemizedStatementItem',
    'AuditLog', 'AuditAction',
]
