"""Middleware for authentication and branch context."""
from functools import wraps
from flask import session, g, current_app
from app.database import get_session
from app.models import Profile, ROLE_HIERARCHY
from app.exceptions import UnauthorizedError


def load_user_and_branch():
    """
    Load current user and branch into g (Flask's per-request global).

    Called before each request to establish the POS context.
    Sets g.user, g.user_id, g.branch_id, g.currency and g.user_role if authenticated.
    """
    g.user = None
    g.user_id = None
    g.branch_id = None
    g.currency = None
    g.user_role = None

    user_id = session.get('user_id')
    if not user_id:
        return

    try:
        db_session = get_session()
        user = db_session.query(Profile).filter_by(id=user_id, active=True).first()
    except Exception as e:
        # Context stays empty; protected views answer 401
        current_app.logger.error(f"Error in load_user_and_branch: {e}")
        return

    if user is None:
        session.pop('user_id', None)
        return

    g.user = user
    g.user_id = user.id
    g.user_role = user.role
    g.branch_id = user.branch_id
    g.currency = user.effective_currency


def require_login(f):
    """Decorator: Require user to be logged in (401 otherwise)."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise UnauthorizedError('Authentication required.', 401)
        return f(*args, **kwargs)
    return decorated_function


def require_branch(f):
    """
    Decorator: Require the user to be assigned to a branch.

    Must be used AFTER require_login.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('branch_id') is None:
            raise UnauthorizedError('Your profile is not assigned to a branch.', 403)
        return f(*args, **kwargs)
    return decorated_function


def require_role(min_role='cashier'):
    """
    Decorator: Require minimum role.

    Roles hierarchy: admin > manager > cashier

    Must be used AFTER require_login.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if g.get('user') is None:
                raise UnauthorizedError('Authentication required.', 401)

            user_level = ROLE_HIERARCHY.get(g.user_role, 0)
            required_level = ROLE_HIERARCHY.get(min_role, 1)
            if user_level < required_level:
                raise UnauthorizedError(f'Requires {min_role} role or higher.', 403)

            return f(*args, **kwargs)
        return decorated_function
    return decorator
