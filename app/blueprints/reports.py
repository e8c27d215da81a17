"""Reports blueprint - sales and inventory reports for the current branch."""
from datetime import date, datetime, timedelta
from flask import Blueprint, request, current_app, g, jsonify, Response
from app.database import get_session
from app.middleware import require_login, require_branch, require_role
from app.services import report_service
from app.services.cache_service import get_cache
from app.exceptions import ValidationError

reports_bp = Blueprint('reports', __name__, url_prefix='/reports')

DEFAULT_PERIOD_DAYS = 30


def _parse_period():
    """start/end query params (YYYY-MM-DD); defaults to the last 30 days."""
    try:
        end = date.fromisoformat(request.args['end']) if request.args.get('end') else date.today()
        start = (date.fromisoformat(request.args['start']) if request.args.get('start')
                 else end - timedelta(days=DEFAULT_PERIOD_DAYS))
    except ValueError:
        raise ValidationError('Dates must use the YYYY-MM-DD format')
    if start > end:
        raise ValidationError('start must be on or before end')
    return start, end


def _sales_series(start, end):
    db_session = get_session()
    branch_id = g.branch_id
    return get_cache().memoize(
        branch_id,
        'reports',
        report_service.report_cache_key('sales', start, end),
        lambda: report_service.daily_sales(db_session, branch_id, start, end),
        ttl=current_app.config.get('CACHE_REPORTS_TTL', 300),
    )


@reports_bp.route('/sales', methods=['GET'])
@require_login
@require_branch
@require_role('manager')
def sales():
    start, end = _parse_period()
    series = _sales_series(start, end)
    return jsonify({
        'start': start.isoformat(),
        'end': end.isoformat(),
        'currency': g.currency,
        'days': series,
        'totals': report_service.sales_totals(series),
    })


@reports_bp.route('/inventory', methods=['GET'])
@require_login
@require_branch
@require_role('manager')
def inventory():
    return jsonify({
        'currency': g.currency,
        'categories': report_service.inventory_by_category(get_session(), g.branch_id),
    })


@reports_bp.route('/download', methods=['GET'])
@require_login
@require_branch
@require_role('manager')
def download():
    """Plain-text report download. Query params: type (sales|inventory), start, end."""
    report_type = request.args.get('type', 'sales')
    if report_type not in report_service.REPORT_TYPES:
        raise ValidationError(f"Unknown report type: {report_type}")

    start, end = _parse_period()
    categories = None
    if report_type == 'inventory':
        categories = report_service.inventory_by_category(get_session(), g.branch_id)

    content = report_service.build_report_text(
        report_type,
        business_name=current_app.config.get('BUSINESS_NAME', ''),
        branch_name=g.user.branch.name,
        currency=g.currency,
        start=start,
        end=end,
        series=_sales_series(start, end),
        categories=categories,
    )
    filename = f"{report_type}-report-{datetime.now():%Y-%m-%d}.txt"
    return Response(
        content,
        mimetype='text/plain',
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )
