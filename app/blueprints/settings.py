"""Settings blueprint - own profile and branch details (JSON)."""
import logging
from flask import Blueprint, request, g, jsonify
from app.database import get_session
from app.middleware import require_login, require_branch, require_role
from app.services import settings_service
from app.services.cache_service import invalidate_branch_cache
from app.exceptions import ValidationError

logger = logging.getLogger(__name__)

settings_bp = Blueprint('settings', __name__, url_prefix='/settings')


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError('Expected a JSON object body.')
    return data


def _profile_payload(profile) -> dict:
    payload = profile.to_dict()
    payload['currency'] = profile.currency
    payload['effective_currency'] = profile.effective_currency
    return payload


@settings_bp.route('/profile', methods=['GET'])
@require_login
def get_profile():
    return jsonify(_profile_payload(g.user))


@settings_bp.route('/profile', methods=['PATCH', 'PUT'])
@require_login
def update_profile():
    """Update full_name, country or currency of the signed-in profile."""
    profile = settings_service.update_profile(get_session(), g.user, _json_body())
    logger.info(f"Profile {profile.id} settings updated (currency={profile.effective_currency})")
    return jsonify(_profile_payload(profile))


@settings_bp.route('/branch', methods=['GET'])
@require_login
@require_branch
@require_role('manager')
def get_branch():
    return jsonify(settings_service.get_branch(get_session(), g.branch_id).to_dict())


@settings_bp.route('/branch', methods=['PATCH', 'PUT'])
@require_login
@require_branch
@require_role('manager')
def update_branch():
    branch = settings_service.update_branch(get_session(), g.branch_id, _json_body())
    invalidate_branch_cache(branch.id)
    logger.info(f"Branch {branch.id} settings updated by profile {g.user_id}")
    return jsonify(branch.to_dict())
