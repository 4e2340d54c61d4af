"""
services/access.py — Group lookup and membership guards shared by services.

Authorization (403) lives in the service layer; these helpers are the only
place that turns "who is the caller in this group" into a Membership row.
Non-members receive 403, not 404, for every group-scoped operation.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from mealsphere.app.errors import AppError, ErrorCode, forbidden, not_found
from mealsphere.app.models.group import Group
from mealsphere.app.models.membership import Membership


def get_group_or_404(group_id: int, session: Session) -> Group:
    """Returns the Group or raises GROUP_NOT_FOUND (404)."""
    group = session.get(Group, group_id)
    if group is None:
        raise not_found(ErrorCode.GROUP_NOT_FOUND, "Group", group_id)
    return group


def get_membership(group_id: int, user_id: int, session: Session) -> Membership | None:
    return session.execute(
        select(Membership).where(
            Membership.group_id == group_id,
            Membership.user_id == user_id,
            )
    ).scalar_one_or_none()


def require_member(group_id: int, user_id: int, session: Session) -> Membership:
    """Returns the caller's Membership or raises FORBIDDEN (403)."""
    membership = get_membership(group_id, user_id, session)
    if membership is None:
        raise forbidden(f"You are not a member of group {group_id}.")
    if membership.is_banned:
        raise forbidden(f"You have been banned from group {group_id}.")
    return membership


def require_target_member(group_id: int, user_id: int, session: Session) -> Membership:
    """Like require_member, but for the user an operation is performed on:
    a missing membership is MEMBER_NOT_FOUND (404)."""
    membership = get_membership(group_id, user_id, session)
    if membership is None:
        raise AppError(
            ErrorCode.MEMBER_NOT_FOUND,
            f"User {user_id} is not a member of group {group_id}.",
            404,
        )
    return membership
