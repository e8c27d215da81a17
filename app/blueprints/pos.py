"""POS blueprint - cart management and checkout for the current branch."""
from flask import Blueprint, request, current_app, g, session, jsonify, url_for
from typing import Optional
import logging
from app.database import get_session
from app.middleware import require_login, require_branch
from app.services import catalog_service, customer_service
from app.services.cart_service import Cart
from app.services.cache_service import invalidate_branch_cache
from app.services.sales_service import PosContext, submit_sale
from app.services.store import DataStore
from app.exceptions import ValidationError, SaleCreationFailed
from app.utils.number_format import parse_count
from app.blueprints.metrics import sales_submitted_total, sale_submission_seconds

logger = logging.getLogger(__name__)

pos_bp = Blueprint('pos', __name__, url_prefix='/pos')

CART_SESSION_KEY = 'cart_by_branch'


def load_cart() -> Cart:
    """Get cart from session for current branch."""
    carts = session.get(CART_SESSION_KEY) or {}
    return Cart.from_dict(carts.get(str(g.branch_id)))


def save_cart(cart: Cart) -> None:
    """Save cart to session for current branch."""
    carts = dict(session.get(CART_SESSION_KEY) or {})
    carts[str(g.branch_id)] = cart.to_dict()
    session[CART_SESSION_KEY] = carts
    session.modified = True


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object body.')
    return data


def _quantity(data: dict, default: Optional[int] = None) -> int:
    value = data.get('quantity', default)
    try:
        return parse_count(value, minimum=0)
    except ValueError as e:
        raise ValidationError(str(e))


def _cart_response(cart: Cart, status: int = 200):
    return jsonify(cart.to_response(g.currency)), status


@pos_bp.route('/cart', methods=['GET'])
@require_login
@require_branch
def view_cart():
    return _cart_response(load_cart())


@pos_bp.route('/cart', methods=['POST'])
@require_login
@require_branch
def add_to_cart():
    """Add a product: {"product_id": 1, "quantity": 2}."""
    data = _json_body()
    product_id = data.get('product_id')
    if product_id is None:
        raise ValidationError('product_id is required')
    try:
        product_id = int(product_id)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid product_id: {product_id}')

    product = catalog_service.get_product(get_session(), product_id, g.branch_id)
    cart = load_cart()
    line = cart.add_item(product, _quantity(data, default=1))
    save_cart(cart)

    logger.info(
        f"[cart_add] branch_id={g.branch_id}, product_id={product_id}, "
        f"line_qty={line.quantity}, cart_size={len(cart)}"
    )
    return _cart_response(cart)


@pos_bp.route('/cart/<int:product_id>', methods=['PATCH', 'PUT'])
@require_login
@require_branch
def update_cart_line(product_id):
    """Overwrite a line quantity: {"quantity": 3}; 0 removes the line."""
    cart = load_cart()
    cart.set_quantity(product_id, _quantity(_json_body()))
    save_cart(cart)
    return _cart_response(cart)


@pos_bp.route('/cart/<int:product_id>', methods=['DELETE'])
@require_login
@require_branch
def remove_cart_line(product_id):
    cart = load_cart()
    cart.remove_item(product_id)
    save_cart(cart)
    return _cart_response(cart)


@pos_bp.route('/cart', methods=['DELETE'])
@require_login
@require_branch
def clear_cart():
    cart = load_cart()
    cart.clear()
    save_cart(cart)
    return _cart_response(cart)


@pos_bp.route('/checkout', methods=['POST'])
@require_login
@require_branch
def checkout():
    """
    Complete the sale from the session cart.

    Body: {"payment_method": "cash", "customer_id": 3 (optional)}

    Returns 201 when every write succeeded, 207 when the sale header was
    recorded but line items or stock decrements failed.
    """
    data = _json_body()
    db_session = get_session()

    customer_id = data.get('customer_id')
    if customer_id not in (None, ''):
        try:
            customer_id = int(customer_id)
        except (TypeError, ValueError):
            raise ValidationError(f'Invalid customer_id: {customer_id}')
        customer_service.get_customer(db_session, customer_id, g.branch_id)
    else:
        customer_id = None

    cart = load_cart()
    context = PosContext(branch_id=g.branch_id, cashier_id=g.user_id, currency=g.currency)

    try:
        with sale_submission_seconds.time():
            submission = submit_sale(
                DataStore(db_session),
                cart,
                context,
                data.get('payment_method'),
                customer_id=customer_id,
                on_complete=lambda sale: invalidate_branch_cache(sale['branch_id']),
                receipt_prefix=current_app.config.get('RECEIPT_PREFIX', 'RCP'),
            )
    except SaleCreationFailed:
        sales_submitted_total.labels(outcome='failed').inc()
        raise

    sales_submitted_total.labels(outcome=submission.outcome.value).inc()
    save_cart(cart)

    payload = submission.to_dict()
    sale_id = submission.sale['id']
    payload['receipt_urls'] = {
        fmt: url_for('sales.receipt', sale_id=sale_id, fmt=fmt)
        for fmt in ('txt', 'html', 'pdf')
    }
    return jsonify(payload), 201 if submission.is_complete else 207
