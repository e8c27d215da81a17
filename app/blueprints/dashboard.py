"""
Dashboard blueprint.
Shows key figures, stock alerts and recent sales for the current branch.
"""

from flask import Blueprint, g, current_app, jsonify
from app.database import get_session
from app.middleware import require_login, require_branch
from app.services.cache_service import get_cache
from app.services.dashboard_service import get_dashboard_data, get_today_datetime_range


dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/dashboard')


@dashboard_bp.route('', methods=['GET'])
@require_login
@require_branch
def index():
    """
    Dashboard figures for the current branch and today:
    - Revenue and number of sales
    - Units in stock, products and customers
    - Low stock products
    - Latest sales
    """
    db_session = get_session()
    branch_id = g.branch_id
    start_dt, end_dt = get_today_datetime_range()

    data = get_cache().memoize(
        branch_id,
        'dashboard',
        f"today:{start_dt.date().isoformat()}",
        lambda: get_dashboard_data(
            db_session, branch_id, start_dt, end_dt,
            threshold=current_app.config['LOW_STOCK_THRESHOLD'],
        ),
        ttl=current_app.config.get('CACHE_DASHBOARD_TTL', 60),
    )
    data['currency'] = g.currency
    return jsonify(data)
