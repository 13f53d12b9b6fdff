"""
Access control for the document store.

Every read or write made on behalf of an end user is checked here before it
touches the store. A decision depends only on the requester's verified
identity, the stored user profile backing the admin check, the existing
document and the proposed document. Nothing is written and nothing is
called out to.

Collections without a policy are denied. A denial never says which
predicate failed.
"""
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, Set

from store import BACKUPS, NOTIFICATIONS, PARKING_SPOTS, RESERVATIONS, SETTINGS, SYSTEM_LOGS, USERS

DENIED_MESSAGE = "Missing or insufficient permissions."

USER_REQUIRED_FIELDS = ("email", "name", "createdAt", "updatedAt", "isEmailVerified")
USER_PROTECTED_FIELDS = ("email", "createdAt")
NOTIFICATION_REQUIRED_FIELDS = (
    "title", "message", "type", "recipientType", "sentBy", "sentAt", "createdAt", "updatedAt",
)
NOTIFICATION_READER_FIELDS = ("readBy", "updatedAt")
SYSTEM_LOG_REQUIRED_FIELDS = ("action", "timestamp")
BACKUP_REQUIRED_FIELDS = ("timestamp", "createdBy")


class Operation(str, Enum):
    READ = "read"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class PermissionDenied(Exception):
    def __init__(self):
        super().__init__(DENIED_MESSAGE)


@dataclass(frozen=True)
class AuthContext:
    uid: str
    email: Optional[str] = None


@dataclass(frozen=True)
class AccessRequest:
    auth: Optional[AuthContext]
    operation: Operation
    collection: str
    document_id: str
    resource: Optional[Mapping[str, Any]] = None
    new_data: Optional[Mapping[str, Any]] = None


# --- field helpers ---

def field(data: Optional[Mapping[str, Any]], key: str) -> Any:
    if data is None:
        return None
    return data.get(key)


def has_all(data: Optional[Mapping[str, Any]], keys: Iterable[str]) -> bool:
    return data is not None and all(key in data for key in keys)


def is_string(value: Any) -> bool:
    return isinstance(value, str)


def is_bool(value: Any) -> bool:
    return isinstance(value, bool)


def is_timestamp(value: Any) -> bool:
    return isinstance(value, datetime)


def affected_keys(before: Optional[Mapping[str, Any]], after: Optional[Mapping[str, Any]]) -> Set[str]:
    """Top-level field names added, removed or changed between two documents."""
    before = before or {}
    after = after or {}
    added = set(after) - set(before)
    removed = set(before) - set(after)
    changed = {key for key in set(before) & set(after) if before[key] != after[key]}
    return added | removed | changed


# --- evaluator ---

class AccessControlEvaluator:
    def __init__(self, get_document: Callable[[str, str], Optional[Dict[str, Any]]]):
        self._get_document = get_document

    def is_authenticated(self, request: AccessRequest) -> bool:
        return request.auth is not None

    def is_owner(self, request: AccessRequest, user_id: str) -> bool:
        return self.is_authenticated(request) and request.auth.uid == user_id

    def requester_profile(self, request: AccessRequest) -> Optional[Dict[str, Any]]:
        if not self.is_authenticated(request):
            return None
        return self._get_document(USERS, request.auth.uid)

    def is_admin(self, request: AccessRequest) -> bool:
        profile = self.requester_profile(request)
        return profile is not None and profile.get("role") == "admin"

    def has_completed_profile(self, request: AccessRequest) -> bool:
        profile = self.requester_profile(request)
        return profile is not None and profile.get("profileCompleted") is True

    def allows(self, request: AccessRequest) -> bool:
        policy = POLICIES.get(request.collection)
        if policy is None:
            return False
        return bool(policy(self, request))

    def authorize(self, request: AccessRequest) -> None:
        if not self.allows(request):
            raise PermissionDenied()


# --- per-collection policies ---

def users_policy(ev: AccessControlEvaluator, req: AccessRequest) -> bool:
    op = req.operation
    if op == Operation.READ:
        return ev.is_owner(req, req.document_id) or ev.is_admin(req)
    if op == Operation.CREATE:
        new = req.new_data
        return (
            ev.is_owner(req, req.document_id)
            and has_all(new, USER_REQUIRED_FIELDS)
            and is_string(field(new, "email"))
            and is_string(field(new, "name"))
            and is_bool(field(new, "isEmailVerified"))
        )
    if op == Operation.UPDATE:
        stamped = is_timestamp(field(req.new_data, "updatedAt"))
        if ev.is_owner(req, req.document_id) and stamped:
            if not affected_keys(req.resource, req.new_data) & set(USER_PROTECTED_FIELDS):
                return True
        return ev.is_admin(req) and stamped
    if op == Operation.DELETE:
        return ev.is_admin(req)
    return False


def parking_spots_policy(ev: AccessControlEvaluator, req: AccessRequest) -> bool:
    op = req.operation
    if op == Operation.READ:
        return True
    if op == Operation.CREATE:
        return ev.is_admin(req) or ev.has_completed_profile(req)
    # Any signed-in user may edit or remove a spot, not only admins
    if op in (Operation.UPDATE, Operation.DELETE):
        return ev.is_admin(req) or ev.is_authenticated(req)
    return False


def reservations_policy(ev: AccessControlEvaluator, req: AccessRequest) -> bool:
    op = req.operation
    if ev.is_admin(req):
        return True
    if not ev.is_authenticated(req):
        return False
    if op == Operation.CREATE:
        return field(req.new_data, "userId") == req.auth.uid and ev.has_completed_profile(req)
    if op in (Operation.READ, Operation.UPDATE, Operation.DELETE):
        return field(req.resource, "userId") == req.auth.uid
    return False


def notifications_policy(ev: AccessControlEvaluator, req: AccessRequest) -> bool:
    op = req.operation
    if op == Operation.READ:
        if ev.is_admin(req):
            return True
        return ev.is_authenticated(req) and (
            field(req.resource, "recipientType") == "all"
            or field(req.resource, "recipientId") == req.auth.uid
        )
    if op == Operation.CREATE:
        new = req.new_data
        return (
            ev.is_admin(req)
            and has_all(new, NOTIFICATION_REQUIRED_FIELDS)
            and all(is_string(field(new, key)) for key in ("title", "message", "type", "recipientType", "sentBy"))
            and all(is_timestamp(field(new, key)) for key in ("sentAt", "createdAt", "updatedAt"))
        )
    if op == Operation.UPDATE:
        if ev.is_admin(req):
            return True
        return (
            ev.is_authenticated(req)
            and affected_keys(req.resource, req.new_data) <= set(NOTIFICATION_READER_FIELDS)
            and is_timestamp(field(req.new_data, "updatedAt"))
        )
    if op == Operation.DELETE:
        return ev.is_admin(req)
    return False


def settings_policy(ev: AccessControlEvaluator, req: AccessRequest) -> bool:
    if not ev.is_admin(req):
        return False
    if req.operation == Operation.UPDATE:
        return is_timestamp(field(req.new_data, "updatedAt"))
    return True


def system_logs_policy(ev: AccessControlEvaluator, req: AccessRequest) -> bool:
    if not ev.is_admin(req):
        return False
    if req.operation == Operation.CREATE:
        new = req.new_data
        return (
            has_all(new, SYSTEM_LOG_REQUIRED_FIELDS)
            and is_string(field(new, "action"))
            and is_timestamp(field(new, "timestamp"))
        )
    return True


def backups_policy(ev: AccessControlEvaluator, req: AccessRequest) -> bool:
    if not ev.is_admin(req):
        return False
    if req.operation == Operation.CREATE:
        new = req.new_data
        return (
            has_all(new, BACKUP_REQUIRED_FIELDS)
            and is_timestamp(field(new, "timestamp"))
            and is_string(field(new, "createdBy"))
        )
    return True


POLICIES: Dict[str, Callable[[AccessControlEvaluator, AccessRequest], bool]] = {
    USERS: users_policy,
    PARKING_SPOTS: parking_spots_policy,
    RESERVATIONS: reservations_policy,
    NOTIFICATIONS: notifications_policy,
    SETTINGS: settings_policy,
    SYSTEM_LOGS: system_logs_policy,
    BACKUPS: backups_policy,
}
