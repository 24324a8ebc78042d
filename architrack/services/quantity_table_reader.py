"""Read-only access to quantity tables for statement generation."""
from typing import List

from sqlalchemy.orm import Session

from architrack.models import QuantityTable, QuantityGroup, QuantityItem
from architrack.exceptions import QuantityTableNotFoundError


def get_quantity_table(session: Session, quantity_table_id: int, project_id: int = None) -> QuantityTable:
    """
    Fetch a live quantity table.

    Raises:
        QuantityTableNotFoundError: If missing, logically deleted, or owned by another project
    """
    table = session.query(QuantityTable).filter(QuantityTable.id == quantity_table_id).first()
    if not table or table.is_deleted:
        raise QuantityTableNotFoundError(quantity_table_id)
    if project_id is not None and table.project_id != project_id:
        raise QuantityTableNotFoundError(quantity_table_id)
    return table


def load_quantity_items(session: Session, quantity_table_id: int) -> List[QuantityItem]:
    """Items of a table in group order, then item order."""
    return (
        session.query(QuantityItem)
        .join(QuantityGroup, QuantityItem.quantity_group_id == QuantityGroup.id)
        .filter(QuantityGroup.quantity_table_id == quantity_table_id)
        .order_by(
            QuantityGroup.display_order,
            QuantityGroup.id,
            QuantityItem.display_order,
            QuantityItem.id
        )
        .all()
    )
