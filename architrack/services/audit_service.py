"""
Audit logging service for tracking itemized statement lifecycle events.
"""
from architrack.models.audit_log import AuditLog, AuditAction
from flask import has_request_context, request
import json
import logging

logger = logging.getLogger(__name__)

ITEMIZED_STATEMENT_TARGET_TYPE = 'itemized_statement'


def _serialize(snapshot):
    if snapshot is None:
        return None
    try:
        return json.dumps(snapshot, default=str, sort_keys=True)
    except (TypeError, ValueError) as e:
        logger.warning(f"Failed to serialize audit snapshot: {e}")
        return str(snapshot)


def log_action(
    session,
    action: AuditAction,
    actor_id,
    target_id: int,
    target_type: str = ITEMIZED_STATEMENT_TARGET_TYPE,
    before: dict = None,
    after: dict = None
):
    """
    Add an audit entry to the session.

    The entry joins the caller's transaction, so it is committed or rolled
    back together with the change it describes.

    Args:
        session: Database session
        action: AuditAction enum value
        actor_id: Identifier supplied by the identity provider (may be None)
        target_id: ID of the affected resource
        target_type: Type of resource affected
        before: State before the change
        after: State after the change
    """
    ip_address = None
    user_agent = None
    if has_request_context():
        ip_address = request.remote_addr
        user_agent = request.headers.get('User-Agent', '')[:255]

    audit_entry = AuditLog(
        actor_id=str(actor_id) if actor_id is not None else None,
        action=action,
        target_type=target_type,
        target_id=target_id,
        before=_serialize(before),
        after=_serialize(after),
        ip_address=ip_address,
        user_agent=user_agent
    )
    session.add(audit_entry)

    logger.info(f"Audit log created: {action.value} by actor {actor_id} on {target_type} {target_id}")
    return audit_entry


def get_audit_logs(
    session,
    target_id: int = None,
    target_type: str = ITEMIZED_STATEMENT_TARGET_TYPE,
    action_filter: AuditAction = None,
    limit: int = 100,
    offset: int = 0
):
    """
    Retrieve audit logs with optional filters, newest first.
    """
    query = session.query(AuditLog).filter(AuditLog.target_type == target_type)

    if target_id is not None:
        query = query.filter(AuditLog.target_id == target_id)

    if action_filter:
        query = query.filter(AuditLog.action == action_filter)

    query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
    return query.limit(limit).offset(offset).all()
