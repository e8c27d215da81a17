"""
Authentication blueprint.
Handles staff login, logout and the current POS context.
"""

from flask import Blueprint, request, session, g, jsonify
from flask_wtf.csrf import generate_csrf
from sqlalchemy import func
import logging
from app.database import get_session
from app.models import Profile
from app.exceptions import BusinessLogicError, UnauthorizedError
from app.middleware import require_login

logger = logging.getLogger(__name__)


auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


def _request_data() -> dict:
    """JSON body or form fields."""
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


@auth_bp.route('/csrf-token', methods=['GET'])
def csrf_token():
    """Token for clients that send X-CSRFToken on write requests."""
    return jsonify({'csrf_token': generate_csrf()})


@auth_bp.route('/login', methods=['POST'])
def login():
    """Validate email + password and open a session bound to the profile's branch."""
    data = _request_data()
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''

    if not email or not password:
        raise BusinessLogicError('Email and password are required.')

    db_session = get_session()
    user = db_session.query(Profile).filter(
        func.lower(Profile.email) == email.lower()
    ).first()

    if not user or not user.active or not user.check_password(password):
        logger.info(f"Failed login for {email}")
        raise UnauthorizedError('Invalid email or password.', 401)

    session.clear()
    session['user_id'] = user.id
    session.permanent = True

    logger.info(f"User {user.id} logged in (branch={user.branch_id}, role={user.role})")
    return jsonify({'status': 'ok', 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Clear the session, including any open carts."""
    session.clear()
    return jsonify({'status': 'ok'})


@auth_bp.route('/me', methods=['GET'])
@require_login
def me():
    branch = g.user.branch
    return jsonify({
        'user': g.user.to_dict(),
        'branch': branch.to_dict() if branch else None,
        'currency': g.currency,
        'role': g.user_role,
    })
