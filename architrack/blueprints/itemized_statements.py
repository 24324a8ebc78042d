"""Itemized statements blueprint (JSON API)."""
from io import BytesIO

from flask import Blueprint, Response, current_app, g, jsonify, request, send_file

from architrack.blueprints.metrics import (
    itemized_statement_delete_conflicts_total,
    itemized_statements_created_total,
    record_export,
)
from architrack.database import get_session
from architrack.exceptions import ConflictError
from architrack.middleware import require_login, require_project
from architrack.schemas import (
    CreateItemizedStatementRequest, DeleteItemizedStatementRequest, LatestSummaryQuery,
    RowQueryRequest, StatementListQuery, export_request_adapter, parse_request
)
from architrack.services.export_service import SPREADSHEET_FORMAT
from architrack.services.itemized_statement_service import (
    create_itemized_statement, delete_itemized_statement, export_itemized_statement,
    get_itemized_statement, get_latest_summary, list_itemized_statements,
    query_statement_rows
)

itemized_statements_bp = Blueprint('itemized_statements', __name__)


@itemized_statements_bp.route('/projects/<int:project_id>/itemized-statements', methods=['POST'])
@require_login
@require_project
def create_statement(project_id):
    """Generate a statement from a quantity table; returns the header and first page."""
    payload = parse_request(CreateItemizedStatementRequest, request.get_json(silent=True))
    db_session = get_session()

    statement = create_itemized_statement(
        db_session,
        project_id,
        payload.name,
        payload.quantity_table_id,
        actor_id=g.user_id
    )
    itemized_statements_created_total.inc()

    body = statement.to_dict()
    body['firstPage'] = query_statement_rows(
        db_session,
        statement.id,
        page_size=current_app.config.get('ITEMIZED_STATEMENT_ROW_PAGE_SIZE', 50)
    ).to_dict()
    return jsonify(body), 201


@itemized_statements_bp.route('/projects/<int:project_id>/itemized-statements', methods=['GET'])
@require_login
@require_project
def list_statements(project_id):
    args = request.args.to_dict()
    args.setdefault('limit', current_app.config.get('ITEMIZED_STATEMENT_LIST_PAGE_SIZE', 20))
    query = parse_request(StatementListQuery, args)
    result = list_itemized_statements(
        get_session(),
        project_id,
        page=query.page,
        limit=query.limit,
        search=query.search,
        sort=query.sort,
        order=query.order
    )
    return jsonify(result)


@itemized_statements_bp.route('/projects/<int:project_id>/itemized-statements/latest', methods=['GET'])
@require_login
@require_project
def latest_statements(project_id):
    query = parse_request(LatestSummaryQuery, request.args.to_dict())
    return jsonify(get_latest_summary(get_session(), project_id, limit=query.limit))


@itemized_statements_bp.route('/itemized-statements/<int:statement_id>', methods=['GET'])
@require_login
def statement_detail(statement_id):
    statement = get_itemized_statement(get_session(), statement_id)
    return jsonify(statement.to_dict())


@itemized_statements_bp.route('/itemized-statements/<int:statement_id>/rows', methods=['GET'])
@require_login
def query_rows(statement_id):
    """One page of rows after filter and sort."""
    args = request.args.to_dict()
    args.setdefault('pageSize', current_app.config.get('ITEMIZED_STATEMENT_ROW_PAGE_SIZE', 50))
    query = parse_request(RowQueryRequest, args)

    result = query_statement_rows(
        get_session(),
        statement_id,
        query.to_query_state(),
        page=query.page,
        page_size=query.page_size
    )
    return jsonify(result.to_dict())


@itemized_statements_bp.route('/itemized-statements/<int:statement_id>', methods=['DELETE'])
@require_login
def delete_statement(statement_id):
    payload = parse_request(DeleteItemizedStatementRequest, request.get_json(silent=True))
    try:
        delete_itemized_statement(get_session(), statement_id, payload.version_token, actor_id=g.user_id)
    except ConflictError:
        itemized_statement_delete_conflicts_total.inc()
        raise
    return '', 204


@itemized_statements_bp.route('/itemized-statements/<int:statement_id>/export', methods=['GET'])
@require_login
def export_statement(statement_id):
    """Export all filtered and sorted rows as an .xlsx download or clipboard text."""
    export_request = parse_request(export_request_adapter, request.args.to_dict())

    payload = export_itemized_statement(
        get_session(),
        statement_id,
        export_request.format,
        export_request.to_query_state()
    )
    record_export(payload.format, payload.row_count)

    if payload.format == SPREADSHEET_FORMAT:
        return send_file(
            BytesIO(payload.content),
            mimetype=payload.mimetype,
            as_attachment=True,
            download_name=payload.filename
        )
    return Response(payload.content, content_type=payload.mimetype)
