from enum import Enum


class ItemType(str, Enum):
    LOST = "lost"
    FOUND = "found"


class ItemStatus(str, Enum):
    ACTIVE = "active"
    CLAIMED = "claimed"
    RESOLVED = "resolved"
    EXPIRED = "expired"
    DELETED = "deleted"


class ClaimStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"


class VerificationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    PENDING_CALL = "pending_call"
    PENDING_DOCUMENTS = "pending_documents"
    REJECTED = "rejected"
    APPROVED = "approved"
    SUSPENDED = "suspended"


class MemberRole(str, Enum):
    ORG_OWNER = "org_owner"
    ORG_ADMIN = "org_admin"
    ORG_STAFF = "org_staff"
    ORG_VIEWER = "org_viewer"


class CallStatus(str, Enum):
    NOT_STARTED = "not_started"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED_VERIFIED = "completed_verified"
    COMPLETED_FAILED = "completed_failed"
    UNREACHABLE = "unreachable"


class HandoverMethod(str, Enum):
    MEETUP = "meetup"
    DELIVERY = "delivery"


class ContactRole(str, Enum):
    OWNER = "owner"
    DIRECTOR = "director"
    MANAGER = "manager"
    IT_ADMIN = "it_admin"
    OPERATIONS = "operations"
    HR = "hr"
    OTHER = "other"
