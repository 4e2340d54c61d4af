"""
services/group_service.py — Group and membership business logic.

Authorization rules:
  - Creating a group: any authenticated user; the creator becomes its admin.
  - Joining: any user; private groups need the group password.
  - Adding / removing members: admin or moderator; any member may leave.
    A moderator cannot remove an admin.
  - Changing roles, deleting the group: admin only.

Membership inserts/deletes and the member_count update always happen in the
same flush, so both commit or neither does.

Deleting a group removes its periods, every ledger row and the transaction
history with it.

Layer rules:
  - No Flask imports. Pure Python with a SQLAlchemy session parameter.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from mealsphere.app.cache import CacheStore, invalidate_on_commit
from mealsphere.app.errors import AppError, ErrorCode, conflict, forbidden, not_found, rule_violation
from mealsphere.app.models.enums import PeriodMode, Role
from mealsphere.app.models.group import Group
from mealsphere.app.models.membership import Membership
from mealsphere.app.models.user import User
from mealsphere.app.services import ledger_reader
from mealsphere.app.services.access import (
    get_group_or_404,
    get_membership,
    require_member,
    require_target_member,
)
from mealsphere.app.services.passwords import check_password, hash_password
from mealsphere.app.services.permissions import can_manage_members

logger = logging.getLogger(__name__)


# ── Private helpers ────────────────────────────────────────────────────────

def _member_dict(membership: Membership, user: User) -> dict:
    return {
        "user_id": user.id,
        "name": user.name,
        "email": user.email,
        "image": user.image,
        "role": membership.role.value,
        "is_banned": membership.is_banned,
        "joined_at": membership.joined_at.isoformat() if membership.joined_at else None,
    }


def _build_group_dict(group: Group, members: list | None = None) -> dict:
    """Serialises a Group, with its member list when one is given."""
    result = {
        "id": group.id,
        "name": group.name,
        "description": group.description,
        "is_private": group.is_private,
        "max_members": group.max_members,
        "member_count": group.member_count,
        "period_mode": group.period_mode.value,
        "created_by": group.created_by,
        "created_at": group.created_at.isoformat() if group.created_at else None,
    }
    if members is not None:
        result["members"] = [_member_dict(m, u) for m, u in members]
    return result


def _add_membership(group: Group, user_id: int, role: Role, session: Session) -> Membership:
    if get_membership(group.id, user_id, session) is not None:
        raise conflict(
            ErrorCode.ALREADY_MEMBER,
            f"User {user_id} is already a member of group {group.id}.",
        )
    if group.member_count >= group.max_members:
        raise conflict(
            ErrorCode.GROUP_FULL,
            f"Group {group.id} is full ({group.max_members} members).",
        )

    membership = Membership(user_id=user_id, group_id=group.id, role=role)
    session.add(membership)
    group.member_count = group.member_count + 1
    session.flush()
    return membership


# ── Public service functions ───────────────────────────────────────────────

def create_group(
        creator_id: int,
        data: dict,
        session: Session,
        bcrypt_rounds: int = 12,
        default_max_members: int = 20,
) -> dict:
    """
    Creates a group; the creator becomes its admin and first member.

    data keys (validated by CreateGroupSchema): name, description,
    is_private, password, max_members, period_mode.
    """
    is_private = bool(data.get("is_private", False))
    password = data.get("password")
    if is_private and not password:
        raise AppError(
            ErrorCode.MISSING_FIELD,
            "A private group needs a password.",
            400,
            field="password",
        )

    group = Group(
        name=data["name"].strip(),
        description=data.get("description"),
        is_private=is_private,
        password_hash=hash_password(password, bcrypt_rounds) if is_private else None,
        max_members=data.get("max_members") or default_max_members,
        member_count=0,
        period_mode=PeriodMode(data.get("period_mode", PeriodMode.CUSTOM)),
        created_by=creator_id,
    )
    session.add(group)
    session.flush()  # populate group.id before creating membership

    membership = _add_membership(group, creator_id, Role.ADMIN, session)
    creator = session.get(User, creator_id)

    logger.info("group %s created by user %s", group.id, creator_id)
    return _build_group_dict(group, [(membership, creator)] if creator else [])


def list_groups(user_id: int, session: Session) -> list[dict]:
    """Groups the user belongs to, oldest membership first. No member lists."""
    stmt = (
        select(Group)
        .join(Membership, Group.id == Membership.group_id)
        .where(Membership.user_id == user_id)
        .order_by(Membership.joined_at.asc(), Group.id.asc())
    )
    return [_build_group_dict(g) for g in session.execute(stmt).scalars().all()]


def get_group(group_id: int, caller_id: int, session: Session) -> dict:
    group = get_group_or_404(group_id, session)
    require_member(group_id, caller_id, session)
    return _build_group_dict(group, ledger_reader.get_members(group_id, session))


def join_group(
        group_id: int,
        caller_id: int,
        session: Session,
        password: str | None = None,
        cache: CacheStore | None = None,
) -> dict:
    """
    Raises:
      AppError(INVALID_GROUP_PASSWORD, 422) — private group, wrong password
      AppError(ALREADY_MEMBER, 409)
      AppError(GROUP_FULL, 409)
    """
    group = get_group_or_404(group_id, session)

    if group.is_private:
        if not check_password(password, group.password_hash):
            raise rule_violation(
                ErrorCode.INVALID_GROUP_PASSWORD,
                "The group password is incorrect.",
                field="password",
            )

    membership = _add_membership(group, caller_id, Role.MEMBER, session)
    invalidate_on_commit(session, cache, group_id, user_id=caller_id)

    user = session.get(User, caller_id)
    return _member_dict(membership, user)


def add_member(
        group_id: int,
        caller_id: int,
        target_user_id: int,
        session: Session,
        cache: CacheStore | None = None,
        role: Role | str = Role.MEMBER,
) -> dict:
    """
    Raises:
      AppError(FORBIDDEN, 403)       — caller is not admin/moderator
      AppError(USER_NOT_FOUND, 404)  — target user does not exist
      AppError(ALREADY_MEMBER, 409)
      AppError(GROUP_FULL, 409)
    """
    group = get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)
    if not can_manage_members(caller.role):
        raise forbidden("Only admins and moderators can add members.")

    role = Role(role)
    if role == Role.ADMIN and caller.role != Role.ADMIN:
        raise forbidden("Only an admin can add another admin.")

    target_user = session.get(User, target_user_id)
    if target_user is None:
        raise not_found(ErrorCode.USER_NOT_FOUND, "User", target_user_id)

    membership = _add_membership(group, target_user_id, role, session)
    invalidate_on_commit(session, cache, group_id, user_id=target_user_id)
    return _member_dict(membership, target_user)


def remove_member(
        group_id: int,
        caller_id: int,
        target_user_id: int,
        session: Session,
        cache: CacheStore | None = None,
) -> None:
    """
    Admins and moderators may remove others (a moderator cannot remove an
    admin); every member may remove themselves.
    """
    group = get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)

    is_self = caller_id == target_user_id
    if not is_self and not can_manage_members(caller.role):
        raise forbidden("You may only remove yourself from a group unless you are an admin or moderator.")

    membership = require_target_member(group_id, target_user_id, session)
    if not is_self and membership.role == Role.ADMIN and caller.role != Role.ADMIN:
        raise forbidden("A moderator cannot remove an admin.")

    session.delete(membership)
    group.member_count = max(group.member_count - 1, 0)
    session.flush()

    invalidate_on_commit(session, cache, group_id, user_id=target_user_id)


def update_member_role(
        group_id: int,
        caller_id: int,
        target_user_id: int,
        role: Role | str,
        session: Session,
        cache: CacheStore | None = None,
) -> dict:
    get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)
    if caller.role != Role.ADMIN:
        raise forbidden("Only a group admin can change member roles.")

    membership = require_target_member(group_id, target_user_id, session)
    membership.role = Role(role)
    session.flush()

    invalidate_on_commit(session, cache, group_id, user_id=target_user_id)
    return _member_dict(membership, membership.user)


def delete_group(
        group_id: int,
        caller_id: int,
        session: Session,
        cache: CacheStore | None = None,
) -> None:
    """Admin only. Cascades to periods, ledger rows, history and memberships."""
    group = get_group_or_404(group_id, session)
    caller = require_member(group_id, caller_id, session)
    if caller.role != Role.ADMIN:
        raise forbidden("Only a group admin can delete the group.")

    session.delete(group)
    session.flush()

    invalidate_on_commit(session, cache, group_id)
    logger.info("group %s deleted by user %s", group_id, caller_id)
