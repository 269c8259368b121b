"""Organization permission resolution.

``resolve_permission`` is a pure decision over an organization row, the
caller's membership row and an action name. ``check_permission`` loads those
rows from the session and delegates to it.
"""
import uuid
from typing import Optional
from pydantic import BaseModel
from sqlmodel import Session, select

from balchhi.models.enums import MemberRole, VerificationStatus
from balchhi.models.organization import Organization
from balchhi.models.organization_member import OrganizationMember


ROLE_PERMISSIONS: dict[str, set[str]] = {
    MemberRole.ORG_OWNER.value: {
        "view", "edit_verification", "submit_verification", "post_item",
        "manage_claim", "manage_members", "manage_settings", "transfer_ownership",
        "view_analytics",
    },
    MemberRole.ORG_ADMIN.value: {
        "view", "edit_verification", "submit_verification", "post_item",
        "manage_claim", "manage_members", "manage_settings", "view_analytics",
    },
    MemberRole.ORG_STAFF.value: {"view", "post_item", "manage_claim", "view_analytics"},
    MemberRole.ORG_VIEWER.value: {"view", "view_analytics"},
}

# Action -> Organization capability flag that must also be set
CAPABILITY_FLAGS = {
    "post_item": "can_post_items",
    "manage_claim": "can_manage_claims",
}


class PermissionResult(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    user_role: Optional[str] = None
    org_status: Optional[str] = None


def resolve_permission(
    user_id: int,
    organization: Optional[Organization],
    membership: Optional[OrganizationMember],
    action: str,
) -> PermissionResult:
    if organization is None:
        return PermissionResult(allowed=False, reason="Organization not found")

    org_status = organization.verification_status

    if user_id == organization.admin_id:
        role = MemberRole.ORG_OWNER.value
    else:
        if membership is None or not membership.is_active or membership.user_id != user_id:
            return PermissionResult(
                allowed=False,
                reason="User is not a member of this organization",
                org_status=org_status,
            )

        role = membership.member_role

        if action not in ROLE_PERMISSIONS.get(role, set()):
            return PermissionResult(
                allowed=False,
                reason=f"Your role ({role}) does not have permission for this action",
                user_role=role,
                org_status=org_status,
            )

    if not organization.is_active:
        return PermissionResult(
            allowed=False,
            reason="Organization is not active",
            user_role=role,
            org_status=org_status,
        )

    flag = CAPABILITY_FLAGS.get(action)
    if flag:
        if org_status != VerificationStatus.APPROVED:
            return PermissionResult(
                allowed=False,
                reason="Organization must be verified and approved to perform this action",
                user_role=role,
                org_status=org_status,
            )

        if not getattr(organization, flag):
            return PermissionResult(
                allowed=False,
                reason=f"Organization is not authorized to {action.replace('_', ' ')}s",
                user_role=role,
                org_status=org_status,
            )

    return PermissionResult(allowed=True, user_role=role, org_status=org_status)


def get_active_membership(session: Session, user_id: int, organization_id: uuid.UUID):
    return session.exec(
        select(OrganizationMember)
        .where(OrganizationMember.organization_id == organization_id)
        .where(OrganizationMember.user_id == user_id)
        .where(OrganizationMember.is_active == True)  # noqa: E712
    ).first()


def check_permission(session: Session, user_id: int, organization_id: uuid.UUID, action: str) -> PermissionResult:
    organization = session.get(Organization, organization_id)
    membership = get_active_membership(session, user_id, organization_id) if organization else None

    return resolve_permission(user_id, organization, membership, action)
