"""
Itemized statement service.

Creates statements as detached snapshots of a quantity table, serves their
rows through the query pipeline and exports, and gates logical delete with an
optimistic version check.
"""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from architrack.exceptions import (
    ConflictError, DuplicateNameError, ItemLimitExceededError,
    ItemizedStatementNotFoundError, NotFoundError
)
from architrack.models import (
    AuditAction, ItemizedStatement, ItemizedStatementItem, Project
)
from architrack.services.audit_service import log_action
from architrack.services.export_service import ExportPayload, export_rows
from architrack.services.pivot_service import aggregate_items
from architrack.services.quantity_table_reader import get_quantity_table, load_quantity_items
from architrack.services.query_service import (
    QueryResult, QueryState, StatementRow, ROW_PAGE_SIZE, STATEMENT_PAGE_SIZE,
    run_query, select_rows
)

logger = logging.getLogger(__name__)

MAX_STATEMENT_ROWS = 2000
LIST_SORT_COLUMNS = {
    'createdAt': ItemizedStatement.created_at,
    'name': ItemizedStatement.name,
}


def _utc_now():
    return datetime.now(timezone.utc)


def get_project(session: Session, project_id: int) -> Project:
    """Project context: the project must exist and not be deleted."""
    project = session.query(Project).filter(Project.id == project_id).first()
    if not project or project.is_deleted:
        raise NotFoundError(f'Project not found: {project_id}')
    return project


def _name_taken(session: Session, project_id: int, name: str) -> bool:
    return session.query(ItemizedStatement.id).filter(
        ItemizedStatement.project_id == project_id,
        ItemizedStatement.name == name,
        ItemizedStatement.deleted_at.is_(None)
    ).first() is not None


def create_itemized_statement(
    session: Session,
    project_id: int,
    name: str,
    quantity_table_id: int,
    actor_id=None
) -> ItemizedStatement:
    """
    Generate an itemized statement from a quantity table.

    Steps:
    1. Validate project and quantity table (same project, not deleted)
    2. Load items in group order, then item order
    3. Aggregate (rejects empty tables and out-of-range sums)
    4. Enforce the row cap and per-project name uniqueness
    5. Insert header (version 1) and rows, add audit entry
    6. Commit

    Header and rows are written in one transaction: on any failure nothing
    is persisted.

    Args:
        session: SQLAlchemy session
        project_id: Owning project
        name: Statement name (already trimmed, 1-200 chars)
        quantity_table_id: Source quantity table
        actor_id: Identity provider user id, recorded in the audit log

    Returns:
        The committed ItemizedStatement header

    Raises:
        NotFoundError: Unknown or deleted project
        QuantityTableNotFoundError: Unknown, deleted or foreign quantity table
        EmptyQuantityItemsError: The table has no items
        QuantityOverflowError: A summed quantity leaves the storable range
        ItemLimitExceededError: More than 2000 distinct rows
        DuplicateNameError: Name already used by a live statement of the project
    """
    try:
        get_project(session, project_id)
        table = get_quantity_table(session, quantity_table_id, project_id)
        items = load_quantity_items(session, table.id)

        result = aggregate_items(items, quantity_table_id=table.id)

        if len(result.rows) > MAX_STATEMENT_ROWS:
            raise ItemLimitExceededError(len(result.rows), MAX_STATEMENT_ROWS)

        if _name_taken(session, project_id, name):
            raise DuplicateNameError(name, project_id)

        now = _utc_now()
        statement = ItemizedStatement(
            project_id=project_id,
            name=name,
            source_quantity_table_id=table.id,
            source_quantity_table_name=table.name,
            item_count=len(result.rows),
            version=1,
            created_at=now,
            updated_at=now
        )
        session.add(statement)
        session.flush()

        session.add_all([
            ItemizedStatementItem(
                itemized_statement_id=statement.id,
                custom_category=row.custom_category,
                work_type=row.work_type,
                name=row.name,
                specification=row.specification,
                unit=row.unit,
                quantity=row.quantity,
                display_order=index
            )
            for index, row in enumerate(result.rows)
        ])

        log_action(
            session,
            AuditAction.ITEMIZED_STATEMENT_CREATED,
            actor_id,
            statement.id,
            after={
                'name': name,
                'projectId': project_id,
                'sourceQuantityTableId': table.id,
                'sourceItemCount': result.source_item_count,
                'itemCount': statement.item_count,
            }
        )

        session.commit()

    except IntegrityError as e:
        # Lost a race on the partial unique index (project_id, name)
        session.rollback()
        if _name_taken(session, project_id, name):
            raise DuplicateNameError(name, project_id) from e
        raise

    except Exception:
        session.rollback()
        raise

    logger.info(
        f"Itemized statement {statement.id} created in project {project_id} "
        f"from quantity table {quantity_table_id} ({statement.item_count} rows)"
    )
    return statement


def get_itemized_statement(session: Session, statement_id: int) -> ItemizedStatement:
    """
    Get a live statement header.

    Raises:
        ItemizedStatementNotFoundError: If unknown or logically deleted
    """
    statement = session.query(ItemizedStatement).filter(
        ItemizedStatement.id == statement_id
    ).first()
    if not statement or statement.is_deleted:
        raise ItemizedStatementNotFoundError(statement_id)
    return statement


def get_statement_rows(session: Session, statement_id: int) -> List[StatementRow]:
    """All rows of a live statement in default order, as detached values."""
    get_itemized_statement(session, statement_id)
    items = session.query(ItemizedStatementItem).filter(
        ItemizedStatementItem.itemized_statement_id == statement_id
    ).order_by(
        ItemizedStatementItem.display_order,
        ItemizedStatementItem.id
    ).all()
    return [StatementRow.from_model(item) for item in items]


def query_statement_rows(
    session: Session,
    statement_id: int,
    state: Optional[QueryState] = None,
    page: int = 1,
    page_size: int = ROW_PAGE_SIZE
) -> QueryResult:
    """Filter, sort and paginate the rows of a statement."""
    rows = get_statement_rows(session, statement_id)
    return run_query(rows, state or QueryState(), page, page_size)


def select_statement_rows(
    session: Session,
    statement_id: int,
    state: Optional[QueryState] = None
) -> Tuple[ItemizedStatement, List[StatementRow]]:
    """Header plus the filtered and sorted rows, unpaginated."""
    statement = get_itemized_statement(session, statement_id)
    rows = get_statement_rows(session, statement_id)
    return statement, select_rows(rows, state or QueryState())


def export_itemized_statement(
    session: Session,
    statement_id: int,
    export_format: str,
    state: Optional[QueryState] = None,
    moment: Optional[datetime] = None
) -> ExportPayload:
    """
    Export exactly the rows a listing with ``state`` would show, across all pages.

    Raises:
        ItemizedStatementNotFoundError: If unknown or logically deleted
        ExportFailedError / CopyFailedError: If rendering fails
    """
    statement, rows = select_statement_rows(session, statement_id, state)
    payload = export_rows(rows, export_format, statement.name, moment)
    logger.info(f"Itemized statement {statement_id} exported as {export_format} ({payload.row_count} rows)")
    return payload


def list_itemized_statements(
    session: Session,
    project_id: int,
    page: int = 1,
    limit: int = STATEMENT_PAGE_SIZE,
    search: Optional[str] = None,
    sort: str = 'createdAt',
    order: str = 'desc'
) -> Dict:
    """
    Paginated list of live statements of a project.

    ``search`` matches statement name or source table name, case-insensitive.

    Returns:
        {'data': [...], 'pagination': {'page', 'limit', 'total', 'totalPages'}}
    """
    get_project(session, project_id)

    query = session.query(ItemizedStatement).filter(
        ItemizedStatement.project_id == project_id,
        ItemizedStatement.deleted_at.is_(None)
    )

    if search:
        escaped = search.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')
        pattern = f'%{escaped}%'
        query = query.filter(or_(
            ItemizedStatement.name.ilike(pattern, escape='\\'),
            ItemizedStatement.source_quantity_table_name.ilike(pattern, escape='\\')
        ))

    total = query.count()

    sort_column = LIST_SORT_COLUMNS.get(sort, ItemizedStatement.created_at)
    if order == 'asc':
        query = query.order_by(sort_column.asc(), ItemizedStatement.id.asc())
    else:
        query = query.order_by(sort_column.desc(), ItemizedStatement.id.desc())

    statements = query.offset((page - 1) * limit).limit(limit).all()

    return {
        'data': [statement.to_dict() for statement in statements],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': total,
            'totalPages': (total + limit - 1) // limit,
        }
    }


def get_latest_summary(session: Session, project_id: int, limit: int = 2) -> Dict:
    """Live statement count and the most recently created ones."""
    get_project(session, project_id)

    base = session.query(ItemizedStatement).filter(
        ItemizedStatement.project_id == project_id,
        ItemizedStatement.deleted_at.is_(None)
    )
    total_count = base.with_entities(func.count(ItemizedStatement.id)).scalar() or 0
    latest = base.order_by(
        ItemizedStatement.created_at.desc(),
        ItemizedStatement.id.desc()
    ).limit(limit).all()

    return {
        'totalCount': total_count,
        'latestStatements': [statement.to_dict() for statement in latest],
    }


def delete_itemized_statement(
    session: Session,
    statement_id: int,
    expected_version: int,
    actor_id=None
) -> None:
    """
    Logically delete a statement if ``expected_version`` is still current.

    The check and the write are one conditional UPDATE; no lock is held
    between the caller's read and this call.

    Raises:
        ItemizedStatementNotFoundError: If unknown or already deleted
        ConflictError: If the statement has changed since the caller read it
    """
    try:
        now = _utc_now()
        result = session.execute(
            update(ItemizedStatement)
            .where(
                ItemizedStatement.id == statement_id,
                ItemizedStatement.version == expected_version,
                ItemizedStatement.deleted_at.is_(None)
            )
            .values(
                deleted_at=now,
                updated_at=now,
                version=ItemizedStatement.version + 1
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            current = session.query(ItemizedStatement).filter(
                ItemizedStatement.id == statement_id
            ).populate_existing().first()
            if not current or current.is_deleted:
                raise ItemizedStatementNotFoundError(statement_id)
            logger.warning(
                f"Delete conflict on itemized statement {statement_id}: "
                f"expected version {expected_version}, current {current.version}"
            )
            raise ConflictError(expected_version, current.version)

        log_action(
            session,
            AuditAction.ITEMIZED_STATEMENT_DELETED,
            actor_id,
            statement_id,
            before={'version': expected_version},
            after={'version': expected_version + 1, 'deletedAt': now.isoformat()}
        )
        session.commit()

    except Exception:
        session.rollback()
        raise

    logger.info(f"Itemized statement {statement_id} deleted by actor {actor_id}")
