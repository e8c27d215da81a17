"""Main blueprint with health check endpoints."""
from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from app.database import get_session
from app.services.cache_service import get_cache

main_bp = Blueprint('main', __name__)


@main_bp.route('/health')
def health():
    """
    Health check endpoint that validates database connection.

    Returns:
        200: Healthy (DB connected)
        500: Unhealthy (DB error)
    """
    try:
        row = get_session().execute(text("SELECT 1 AS health_check")).fetchone()
    except SQLAlchemyError as e:
        return jsonify({
            'status': 'unhealthy',
            'database': 'disconnected',
            'error': str(e),
        }), 500

    if not row or row[0] != 1:
        return jsonify({'status': 'unhealthy', 'database': 'error'}), 500

    return jsonify({
        'status': 'healthy',
        'database': 'connected',
        'cache': 'connected' if get_cache().is_available() else 'disabled',
    }), 200
