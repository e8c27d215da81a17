"""Settings service - the signed-in profile and its branch."""
import re
from typing import Any, Dict, Iterable

from sqlalchemy.orm import Session

from app.models import Branch, Profile
from app.exceptions import NotFoundError, ValidationError

PROFILE_FIELDS = ('full_name', 'country', 'currency')
BRANCH_FIELDS = ('name', 'address', 'country', 'currency', 'phone', 'email')

CURRENCY_RE = re.compile(r'^[A-Z]{3}$')


def _clean(data: Dict[str, Any], allowed: Iterable[str]) -> Dict[str, Any]:
    unknown = sorted(set(data) - set(allowed))
    if unknown:
        raise ValidationError(f"Unknown field(s): {', '.join(unknown)}")

    cleaned = {}
    for key, value in data.items():
        if value is not None and not isinstance(value, str):
            raise ValidationError(f'{key} must be a string')
        cleaned[key] = value.strip() if isinstance(value, str) else None
    return cleaned


def _currency(value: Any) -> str:
    code = (value or '').upper()
    if not code:
        raise ValidationError('Currency cannot be empty')
    if not CURRENCY_RE.match(code):
        raise ValidationError(f'Invalid currency code: {value}')
    return code


def update_profile(session: Session, profile: Profile, data: Dict[str, Any]) -> Profile:
    """
    Update the profile's display name, country and currency.

    The profile currency overrides the branch currency on new sales;
    null clears it so sales fall back to the branch.
    """
    cleaned = _clean(data, PROFILE_FIELDS)
    if 'currency' in cleaned and data['currency'] is not None:
        cleaned['currency'] = _currency(cleaned['currency'])

    for key, value in cleaned.items():
        setattr(profile, key, value or None)
    session.commit()
    return profile


def get_branch(session: Session, branch_id: int) -> Branch:
    branch = session.get(Branch, branch_id)
    if branch is None:
        raise NotFoundError('Branch not found.')
    return branch


def update_branch(session: Session, branch_id: int, data: Dict[str, Any]) -> Branch:
    """Update the branch's contact details and default currency."""
    cleaned = _clean(data, BRANCH_FIELDS)
    if 'name' in cleaned and not cleaned['name']:
        raise ValidationError('Branch name is required')
    if 'currency' in cleaned:
        cleaned['currency'] = _currency(cleaned['currency'])

    branch = get_branch(session, branch_id)
    for key, value in cleaned.items():
        setattr(branch, key, value or None)
    session.commit()
    return branch
