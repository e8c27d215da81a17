"""Catalog blueprint for branch products (JSON)."""
from flask import Blueprint, request, current_app, g, jsonify
from app.database import get_session
from app.middleware import require_login, require_branch, require_role
from app.services import catalog_service
from app.services.cache_service import invalidate_branch_cache
from app.exceptions import ValidationError
import logging

logger = logging.getLogger(__name__)

catalog_bp = Blueprint('catalog', __name__, url_prefix='/catalog')


def _product_payload(product, threshold):
    data = product.to_dict()
    data['stock_status'] = catalog_service.stock_status(product, threshold)
    return data


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object body.')
    return data


@catalog_bp.route('/products', methods=['GET'])
@require_login
@require_branch
def list_products():
    """Products of the current branch. Query params: q, category."""
    db_session = get_session()
    threshold = current_app.config['LOW_STOCK_THRESHOLD']
    products = catalog_service.list_products(
        db_session,
        g.branch_id,
        search=request.args.get('q', ''),
        category=request.args.get('category', 'all'),
    )
    return jsonify({
        'products': [_product_payload(p, threshold) for p in products],
        'categories': catalog_service.list_categories(db_session, g.branch_id),
    })


@catalog_bp.route('/products/<int:product_id>', methods=['GET'])
@require_login
@require_branch
def get_product(product_id):
    product = catalog_service.get_product(get_session(), product_id, g.branch_id)
    return jsonify(_product_payload(product, current_app.config['LOW_STOCK_THRESHOLD']))


@catalog_bp.route('/products', methods=['POST'])
@require_login
@require_branch
@require_role('manager')
def create_product():
    product = catalog_service.create_product(get_session(), g.branch_id, _json_body())
    invalidate_branch_cache(g.branch_id)
    logger.info(f"Product {product.id} created in branch {g.branch_id} by user {g.user_id}")
    return jsonify(_product_payload(product, current_app.config['LOW_STOCK_THRESHOLD'])), 201


@catalog_bp.route('/products/<int:product_id>', methods=['PUT', 'PATCH'])
@require_login
@require_branch
@require_role('manager')
def update_product(product_id):
    product = catalog_service.update_product(get_session(), product_id, g.branch_id, _json_body())
    invalidate_branch_cache(g.branch_id)
    return jsonify(_product_payload(product, current_app.config['LOW_STOCK_THRESHOLD']))


@catalog_bp.route('/products/<int:product_id>', methods=['DELETE'])
@require_login
@require_branch
@require_role('manager')
def delete_product(product_id):
    catalog_service.delete_product(get_session(), product_id, g.branch_id)
    invalidate_branch_cache(g.branch_id)
    logger.info(f"Product {product_id} deleted from branch {g.branch_id} by user {g.user_id}")
    return jsonify({'status': 'ok'})


@catalog_bp.route('/summary', methods=['GET'])
@require_login
@require_branch
def summary():
    """Inventory totals and low-stock list."""
    db_session = get_session()
    threshold = current_app.config['LOW_STOCK_THRESHOLD']
    data = catalog_service.inventory_summary(db_session, g.branch_id, threshold)
    data['low_stock'] = [
        _product_payload(p, threshold)
        for p in catalog_service.low_stock_products(db_session, g.branch_id, threshold)
    ]
    data['currency'] = g.currency
    return jsonify(data)
