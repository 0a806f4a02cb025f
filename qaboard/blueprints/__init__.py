"""
QA Board
Blueprint registry and helpers shared by the route modules.
"""

from flask import request

from qaboard.middleware.session_context import current_context


def paginate_query(query, default_limit=200, max_limit=1000):
    """Apply limit/offset pagination to a SQLAlchemy query.

    Query params:
        limit  — max items (default 200, capped at max_limit)
        offset — starting position (default 0)

    Returns:
        (items_list, total_count)
    """
    total = query.count()
    try:
        limit = min(int(request.args.get("limit", default_limit)), max_limit)
    except (ValueError, TypeError):
        limit = default_limit
    try:
        offset = max(int(request.args.get("offset", 0)), 0)
    except (ValueError, TypeError):
        offset = 0
    items = query.limit(limit).offset(offset).all()
    return items, total


def json_body() -> dict:
    """Request JSON object, or an empty dict for a missing/invalid body."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def session_ctx():
    return current_context()
