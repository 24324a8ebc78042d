"""Middleware for identity and project context."""
from functools import wraps
from flask import session, g, jsonify
from architrack.database import get_session
from architrack.services.itemized_statement_service import get_project


def load_identity():
    """
    Load the current user id into g.

    Authentication itself lives outside this service; the identity provider
    stores the authenticated user's id in the Flask session.
    """
    g.user_id = session.get('user_id')


def require_login(f):
    """
    Decorator: Require an authenticated user.

    Answers 401 JSON when the session carries no user id.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user_id') is None:
            return jsonify({
                'status': 'error',
                'code': 'UNAUTHORIZED',
                'message': 'Authentication required'
            }), 401
        return f(*args, **kwargs)

    return decorated_function


def require_project(f):
    """
    Decorator: Resolve ``project_id`` from the URL into g.project.

    Unknown or deleted projects raise NotFoundError (404 through the app
    error handler).
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.project = get_project(get_session(), kwargs['project_id'])
        return f(*args, **kwargs)

    return decorated_function
