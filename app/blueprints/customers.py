"""Customers blueprint - branch customer registry (JSON)."""
from flask import Blueprint, request, g, jsonify
from app.database import get_session
from app.middleware import require_login, require_branch, require_role
from app.services import customer_service
from app.exceptions import ValidationError

customers_bp = Blueprint('customers', __name__, url_prefix='/customers')


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object body.')
    return data


@customers_bp.route('', methods=['GET'])
@require_login
@require_branch
def list_customers():
    """List customers with optional search (q)."""
    db_session = get_session()
    customers = customer_service.list_customers(db_session, g.branch_id, request.args.get('q', ''))
    return jsonify({
        'customers': [c.to_dict() for c in customers],
        'stats': customer_service.customer_stats(db_session, g.branch_id),
    })


@customers_bp.route('/<int:customer_id>', methods=['GET'])
@require_login
@require_branch
def get_customer(customer_id):
    customer = customer_service.get_customer(get_session(), customer_id, g.branch_id)
    return jsonify(customer.to_dict())


@customers_bp.route('', methods=['POST'])
@require_login
@require_branch
@require_role('manager')
def create_customer():
    customer = customer_service.create_customer(get_session(), g.branch_id, _json_body())
    return jsonify(customer.to_dict()), 201


@customers_bp.route('/<int:customer_id>', methods=['PUT', 'PATCH'])
@require_login
@require_branch
@require_role('manager')
def update_customer(customer_id):
    customer = customer_service.update_customer(get_session(), customer_id, g.branch_id, _json_body())
    return jsonify(customer.to_dict())


@customers_bp.route('/<int:customer_id>', methods=['DELETE'])
@require_login
@require_branch
@require_role('manager')
def delete_customer(customer_id):
    customer_service.delete_customer(get_session(), customer_id, g.branch_id)
    return jsonify({'status': 'ok'})
