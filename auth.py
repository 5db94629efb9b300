"""Accounts, login and the capability check used wherever an action is offered."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Optional, Tuple

from werkzeug.security import check_password_hash, generate_password_hash

import db
from constants import (
    MIN_PASSWORD_LENGTH,
    NAV_ITEMS,
    PAGE_SETTINGS,
    PERM_DELETE_RECORDS,
    ROLE_ADMIN,
    ROLE_USER,
    USER_SHIFTS,
)
from models import UserProfile
from settings import get_settings

logger = logging.getLogger(__name__)


class AuthenticationError(ValueError):
    """Login or re-authentication failed."""


@dataclass(frozen=True)
class ActorContext:
    """The signed-in user, handed explicitly to anything that authorizes."""

    user_id: int
    name: str
    email: str
    role: str
    permissions: FrozenSet[str]

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


def actor_from_profile(profile: UserProfile) -> ActorContext:
    return ActorContext(
        user_id=profile.id,
        name=profile.name,
        email=profile.email,
        role=profile.role,
        permissions=frozenset(profile.permissions),
    )


def has_capability(actor: Optional[ActorContext], capability: str) -> bool:
    if actor is None:
        return False
    if actor.is_admin:
        return True
    return capability in actor.permissions


def visible_pages(actor: Optional[ActorContext]) -> List[Tuple[str, str]]:
    """(path, label) of the navigation entries the actor may open."""
    if actor is None:
        return []
    pages = []
    for path, label, admin_only in NAV_ITEMS:
        if admin_only and not actor.is_admin:
            continue
        if path == PAGE_SETTINGS or has_capability(actor, path):
            pages.append((path, label))
    return pages


def email_for_badge(badge: str) -> str:
    return f"{badge.strip()}@{get_settings().email_domain}".lower()


def _check_password_policy(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValueError(f"The password must have at least {MIN_PASSWORD_LENGTH} characters.")


def register_user(
    name: str,
    badge: str,
    password: str,
    *,
    shift: Optional[str] = None,
    permissions: Iterable[str] = (),
) -> int:
    name = (name or "").strip()
    badge = (badge or "").strip()
    if not name or not badge or not password:
        raise ValueError("Please fill in name, badge number and password.")
    _check_password_policy(password)
    if shift is not None and shift not in USER_SHIFTS:
        raise ValueError(f"Invalid shift: {shift}.")
    return db.create_user(
        name=name,
        badge=badge,
        email=email_for_badge(badge),
        password_hash=generate_password_hash(password),
        role=ROLE_USER,
        shift=shift,
        permissions=permissions,
    )


def login(identifier: str, password: str) -> ActorContext:
    credentials = db.fetch_user_credentials(identifier)
    if credentials is None or not check_password_hash(credentials[1], password or ""):
        logger.info("Login rejected", extra={"reason": "invalid credentials"})
        raise AuthenticationError("Invalid login or password.")
    profile = credentials[0]
    logger.info("Login", extra={"user_id": profile.id})
    return actor_from_profile(profile)


def change_own_password(
    actor: ActorContext, current_password: str, new_password: str, confirm_password: str
) -> None:
    if not current_password or not new_password or not confirm_password:
        raise ValueError("Please fill in all fields.")
    if new_password != confirm_password:
        raise ValueError("The new password and its confirmation do not match.")
    _check_password_policy(new_password)
    credentials = db.fetch_user_credentials(actor.email)
    if credentials is None or not check_password_hash(credentials[1], current_password):
        raise AuthenticationError("The current password is incorrect.")
    db.set_password_hash(actor.user_id, generate_password_hash(new_password))


def bootstrap_admin() -> Optional[int]:
    """Create the configured admin account when the store has no admin yet."""
    if db.count_admins() > 0:
        return None
    settings = get_settings()
    if not settings.admin_password:
        logger.warning("No admin account and no bootstrap password configured")
        return None
    try:
        _check_password_policy(settings.admin_password)
    except ValueError:
        logger.warning(
            "Bootstrap admin password rejected", extra={"reason": "shorter than minimum length"}
        )
        return None
    all_pages = [path for path, _label, _admin in NAV_ITEMS] + [PERM_DELETE_RECORDS]
    user_id = db.create_user(
        name=settings.admin_name,
        badge="admin",
        email=settings.admin_email,
        password_hash=generate_password_hash(settings.admin_password),
        role=ROLE_ADMIN,
        permissions=all_pages,
    )
    logger.info("Bootstrap admin created", extra={"user_id": user_id})
    return user_id
