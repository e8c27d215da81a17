"""Sales blueprint - sales ledger and receipts for the current branch."""
from flask import Blueprint, request, current_app, g, jsonify, send_file, Response
import logging
from app.database import get_session
from app.middleware import require_login, require_branch
from app.services.sales_service import list_sales, get_sale, sales_summary
from app.services.receipt_service import (
    Branding, build_receipt, render_receipt_text, render_receipt_html, render_receipt_pdf
)
from app.exceptions import ValidationError
from app.blueprints.metrics import receipts_rendered_total

logger = logging.getLogger(__name__)

sales_bp = Blueprint('sales', __name__, url_prefix='/sales')


@sales_bp.route('', methods=['GET'])
@require_login
@require_branch
def index():
    """Sales list. Query params: q (receipt number or customer), status, limit."""
    db_session = get_session()
    limit = request.args.get('limit', type=int)
    if limit is not None and limit < 1:
        raise ValidationError('limit must be positive')

    sales = list_sales(
        db_session,
        g.branch_id,
        search=request.args.get('q', ''),
        status=request.args.get('status', 'all'),
        limit=limit,
    )
    return jsonify({
        'sales': [sale.to_dict(with_items=True) for sale in sales],
        'summary': sales_summary(db_session, g.branch_id),
        'currency': g.currency,
    })


@sales_bp.route('/<int:sale_id>', methods=['GET'])
@require_login
@require_branch
def detail(sale_id):
    sale = get_sale(get_session(), sale_id, g.branch_id)
    return jsonify(sale.to_dict(with_items=True))


@sales_bp.route('/<int:sale_id>/receipt.<any(txt, html, pdf):fmt>', methods=['GET'])
@require_login
@require_branch
def receipt(sale_id, fmt):
    """Receipt as plain text, printable HTML or PDF."""
    sale = get_sale(get_session(), sale_id, g.branch_id)
    model = build_receipt(
        sale,
        sale.items,
        customer=sale.customer,
        branding=Branding.from_config(current_app.config),
    )
    if model.total_matches_stored is False:
        logger.warning(
            f"Sale {sale.receipt_number}: line items total {model.total} "
            f"differs from stored total {model.stored_total}"
        )

    receipts_rendered_total.labels(format=fmt).inc()
    filename = f"receipt-{sale.receipt_number}.{fmt}"
    if fmt == 'txt':
        return Response(
            render_receipt_text(model),
            mimetype='text/plain',
            headers={'Content-Disposition': f'attachment; filename={filename}'},
        )
    if fmt == 'html':
        return Response(render_receipt_html(model), mimetype='text/html')

    return send_file(
        render_receipt_pdf(model),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=filename,
    )
