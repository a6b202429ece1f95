"""Role and ownership rules for every catalog mutation and read.

Handlers resolve their target first (missing targets are a ``NotFound`` before
any rule runs), then call :func:`require` with the acting user, the action
name and the resolved target. Rules are checked in a fixed order:

1. role tier of the action,
2. self-action exclusion (only ``user.toggle_active``),
3. ownership of the target, which admins are exempt from.
"""

import logging
from dataclasses import dataclass
from typing import Any

from api_catalog.core.errors import Forbidden
from api_catalog.models.user import ROLE_ADMIN, ROLE_DEVELOPER, ROLE_USER

logger = logging.getLogger(__name__)

TIER_ANY = 'any-authenticated'
TIER_DEVELOPER = 'developer-or-admin'
TIER_ADMIN = 'admin-only'

TIER_ROLES = {
    TIER_ANY: frozenset({ROLE_USER, ROLE_DEVELOPER, ROLE_ADMIN}),
    TIER_DEVELOPER: frozenset({ROLE_DEVELOPER, ROLE_ADMIN}),
    TIER_ADMIN: frozenset({ROLE_ADMIN}),
}

REASON_INSUFFICIENT_ROLE = 'insufficient role'
REASON_SELF_ACTION = 'cannot act on self'
REASON_NOT_OWNER = 'not authorized'


@dataclass(frozen=True)
class Policy:
    tier: str
    # Attribute on the target holding the owning user id; None means no ownership rule.
    owner_field: str | None = None
    self_excluded: bool = False


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str | None = None


ALLOW = Decision(allowed=True)

POLICIES: dict[str, Policy] = {
    # users
    'user.list': Policy(TIER_ADMIN),
    'user.read': Policy(TIER_ANY),
    'user.update': Policy(TIER_ANY, owner_field='id'),
    'user.change_role': Policy(TIER_ADMIN),
    'user.delete': Policy(TIER_ADMIN),
    # admin controls
    'user.toggle_active': Policy(TIER_ADMIN, self_excluded=True),
    'user.change_password': Policy(TIER_ADMIN),
    'notification.send': Policy(TIER_ADMIN),
    'admin.stats': Policy(TIER_ADMIN),
    # categories
    'category.read': Policy(TIER_ANY),
    'category.create': Policy(TIER_DEVELOPER),
    'category.update': Policy(TIER_DEVELOPER, owner_field='user_id'),
    'category.delete': Policy(TIER_DEVELOPER, owner_field='user_id'),
    # apis
    'api.read': Policy(TIER_ANY),
    'api.search': Policy(TIER_ANY),
    'api.stats': Policy(TIER_ANY),
    'api.create': Policy(TIER_DEVELOPER),
    'api.update': Policy(TIER_DEVELOPER, owner_field='user_id'),
    'api.delete': Policy(TIER_DEVELOPER, owner_field='user_id'),
    # notifications are looked up scoped to the recipient, so only the tier applies
    'notification.read': Policy(TIER_ANY),
    'notification.update': Policy(TIER_ANY),
    'notification.delete': Policy(TIER_ANY),
}


def authorize(actor: Any, action: str, target: Any = None) -> Decision:
    try:
        policy = POLICIES[action]
    except KeyError as exc:
        raise ValueError(f'Unknown action: {action}') from exc

    if target is None and (policy.owner_field or policy.self_excluded):
        raise ValueError(f'{action} requires a target')

    if actor.role not in TIER_ROLES[policy.tier]:
        return Decision(allowed=False, reason=REASON_INSUFFICIENT_ROLE)

    if target is None:
        return ALLOW

    if policy.self_excluded and target.id == actor.id:
        return Decision(allowed=False, reason=REASON_SELF_ACTION)

    if policy.owner_field and actor.role != ROLE_ADMIN:
        if getattr(target, policy.owner_field) != actor.id:
            return Decision(allowed=False, reason=REASON_NOT_OWNER)

    return ALLOW


def require(actor: Any, action: str, target: Any = None) -> None:
    """Raise ``Forbidden`` with the denial reason unless ``actor`` may perform ``action``."""
    decision = authorize(actor, action, target)
    if not decision.allowed:
        logger.warning(
            'Denied %s for user %s (role=%s): %s',
            action,
            actor.id,
            actor.role,
            decision.reason,
        )
        raise Forbidden(decision.reason)
