from datetime import datetime, timedelta, timezone

import pytest

from rules import (
    DENIED_MESSAGE, AccessControlEvaluator, AccessRequest, AuthContext, Operation, PermissionDenied,
    affected_keys,
)

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
LATER = NOW + timedelta(minutes=5)

PROFILES = {
    "alice": {"email": "alice@example.com", "name": "Alice", "role": "user", "profileCompleted": True},
    "bob": {"email": "bob@example.com", "name": "Bob", "role": "user", "profileCompleted": False},
    "root": {"email": "root@example.com", "name": "Root", "role": "admin", "profileCompleted": True},
}


@pytest.fixture()
def evaluator():
    return AccessControlEvaluator(lambda collection, doc_id: PROFILES.get(doc_id) if collection == "users" else None)


def req(uid, operation, collection, doc_id="doc", resource=None, new_data=None):
    auth = AuthContext(uid=uid) if uid else None
    return AccessRequest(auth, operation, collection, doc_id, resource, new_data)


def user_doc(**overrides):
    doc = {
        "email": "alice@example.com",
        "name": "Alice",
        "createdAt": NOW,
        "updatedAt": NOW,
        "isEmailVerified": False,
    }
    doc.update(overrides)
    return doc


def notification_doc(**overrides):
    doc = {
        "title": "Welcome",
        "message": "Thanks for joining",
        "type": "general",
        "recipientType": "all",
        "recipientId": None,
        "sentBy": "root",
        "sentAt": NOW,
        "readBy": [],
        "createdAt": NOW,
        "updatedAt": NOW,
    }
    doc.update(overrides)
    return doc


# --- predicates ---

@pytest.mark.parametrize("uid,target,expected", [
    ("alice", "alice", True),
    ("alice", "bob", False),
    (None, "alice", False),
])
def test_is_owner_only_when_identity_matches(evaluator, uid, target, expected):
    assert evaluator.is_owner(req(uid, Operation.READ, "users"), target) is expected


def test_is_admin_requires_stored_admin_role(evaluator):
    assert evaluator.is_admin(req("root", Operation.READ, "users"))
    assert not evaluator.is_admin(req("alice", Operation.READ, "users"))
    assert not evaluator.is_admin(req("ghost", Operation.READ, "users"))
    assert not evaluator.is_admin(req(None, Operation.READ, "users"))


def test_affected_keys_covers_added_removed_and_changed():
    before = {"a": 1, "b": 2, "c": 3}
    after = {"a": 1, "b": 20, "d": 4}
    assert affected_keys(before, after) == {"b", "c", "d"}
    assert affected_keys(before, dict(before)) == set()


def test_unknown_collection_is_denied(evaluator):
    assert not evaluator.allows(req("root", Operation.READ, "payments"))


def test_authorize_raises_uniform_message(evaluator):
    with pytest.raises(PermissionDenied) as excinfo:
        evaluator.authorize(req(None, Operation.DELETE, "users", "alice"))
    assert str(excinfo.value) == DENIED_MESSAGE


# --- users ---

def test_user_reads_own_profile_and_admin_reads_any(evaluator):
    assert evaluator.allows(req("alice", Operation.READ, "users", "alice"))
    assert evaluator.allows(req("root", Operation.READ, "users", "alice"))
    assert not evaluator.allows(req("bob", Operation.READ, "users", "alice"))
    assert not evaluator.allows(req(None, Operation.READ, "users", "alice"))


def test_user_self_create_requires_fields_and_types(evaluator):
    assert evaluator.allows(req("alice", Operation.CREATE, "users", "alice", new_data=user_doc()))
    assert not evaluator.allows(req("bob", Operation.CREATE, "users", "alice", new_data=user_doc()))

    missing = user_doc()
    del missing["isEmailVerified"]
    assert not evaluator.allows(req("alice", Operation.CREATE, "users", "alice", new_data=missing))
    assert not evaluator.allows(req("alice", Operation.CREATE, "users", "alice", new_data=user_doc(name=42)))
    assert not evaluator.allows(
        req("alice", Operation.CREATE, "users", "alice", new_data=user_doc(isEmailVerified="no"))
    )


@pytest.mark.parametrize("field,value", [
    ("email", "new@example.com"),
    ("createdAt", LATER),
])
def test_owner_cannot_change_protected_fields(evaluator, field, value):
    before = user_doc()
    after = user_doc(updatedAt=LATER, **{field: value})
    assert not evaluator.allows(req("alice", Operation.UPDATE, "users", "alice", before, after))
    # admins may
    assert evaluator.allows(req("root", Operation.UPDATE, "users", "alice", before, after))


def test_owner_update_needs_timestamp(evaluator):
    before = user_doc()
    assert evaluator.allows(
        req("alice", Operation.UPDATE, "users", "alice", before, user_doc(name="Alicia", updatedAt=LATER))
    )
    assert not evaluator.allows(
        req("alice", Operation.UPDATE, "users", "alice", before, user_doc(name="Alicia", updatedAt="now"))
    )
    assert not evaluator.allows(
        req("root", Operation.UPDATE, "users", "alice", before, user_doc(updatedAt=None))
    )


def test_only_admin_deletes_users(evaluator):
    assert evaluator.allows(req("root", Operation.DELETE, "users", "alice"))
    assert not evaluator.allows(req("alice", Operation.DELETE, "users", "alice"))


# --- parking spots ---

def test_spots_are_public_to_read(evaluator):
    assert evaluator.allows(req(None, Operation.READ, "parking_spots"))


def test_spot_create_needs_admin_or_completed_profile(evaluator):
    assert evaluator.allows(req("root", Operation.CREATE, "parking_spots", new_data={}))
    assert evaluator.allows(req("alice", Operation.CREATE, "parking_spots", new_data={}))
    assert not evaluator.allows(req("bob", Operation.CREATE, "parking_spots", new_data={}))
    assert not evaluator.allows(req("ghost", Operation.CREATE, "parking_spots", new_data={}))
    assert not evaluator.allows(req(None, Operation.CREATE, "parking_spots", new_data={}))


@pytest.mark.parametrize("operation", [Operation.UPDATE, Operation.DELETE])
def test_any_signed_in_user_may_change_spots(evaluator, operation):
    assert evaluator.allows(req("bob", operation, "parking_spots", resource={}, new_data={}))
    assert not evaluator.allows(req(None, operation, "parking_spots", resource={}, new_data={}))


# --- reservations ---

def test_reservation_access_follows_owner(evaluator):
    resource = {"userId": "alice"}
    for operation in (Operation.READ, Operation.UPDATE, Operation.DELETE):
        assert evaluator.allows(req("alice", operation, "reservations", resource=resource, new_data=resource))
        assert evaluator.allows(req("root", operation, "reservations", resource=resource, new_data=resource))
        assert not evaluator.allows(req("bob", operation, "reservations", resource=resource, new_data=resource))
        assert not evaluator.allows(req(None, operation, "reservations", resource=resource, new_data=resource))


def test_reservation_read_of_missing_document_is_denied_to_users(evaluator):
    assert not evaluator.allows(req("alice", Operation.READ, "reservations", resource=None))
    assert evaluator.allows(req("root", Operation.READ, "reservations", resource=None))


def test_reservation_create_requires_own_id_and_completed_profile(evaluator):
    assert evaluator.allows(req("alice", Operation.CREATE, "reservations", new_data={"userId": "alice"}))
    assert not evaluator.allows(req("alice", Operation.CREATE, "reservations", new_data={"userId": "bob"}))
    assert not evaluator.allows(req("bob", Operation.CREATE, "reservations", new_data={"userId": "bob"}))
    assert evaluator.allows(req("root", Operation.CREATE, "reservations", new_data={"userId": "bob"}))


# --- notifications ---

def test_notification_visibility(evaluator):
    broadcast = notification_doc()
    direct = notification_doc(recipientType="user", recipientId="alice")
    assert evaluator.allows(req("bob", Operation.READ, "notifications", resource=broadcast))
    assert evaluator.allows(req("alice", Operation.READ, "notifications", resource=direct))
    assert not evaluator.allows(req("bob", Operation.READ, "notifications", resource=direct))
    assert evaluator.allows(req("root", Operation.READ, "notifications", resource=direct))
    assert not evaluator.allows(req(None, Operation.READ, "notifications", resource=broadcast))


def test_notification_create_is_admin_only_with_all_fields(evaluator):
    assert evaluator.allows(req("root", Operation.CREATE, "notifications", new_data=notification_doc()))
    assert not evaluator.allows(req("alice", Operation.CREATE, "notifications", new_data=notification_doc()))


@pytest.mark.parametrize("missing", [
    "title", "message", "type", "recipientType", "sentBy", "sentAt", "createdAt", "updatedAt",
])
def test_notification_create_denied_when_required_field_missing(evaluator, missing):
    doc = notification_doc()
    del doc[missing]
    assert not evaluator.allows(req("root", Operation.CREATE, "notifications", new_data=doc))


@pytest.mark.parametrize("field,value", [
    ("title", 1), ("sentBy", None), ("sentAt", "yesterday"), ("updatedAt", 0),
])
def test_notification_create_denied_on_wrong_type(evaluator, field, value):
    doc = notification_doc(**{field: value})
    assert not evaluator.allows(req("root", Operation.CREATE, "notifications", new_data=doc))


def test_reader_may_only_touch_read_by(evaluator):
    before = notification_doc()
    marked = notification_doc(readBy=["alice"], updatedAt=LATER)
    retitled = notification_doc(readBy=["alice"], title="Hacked", updatedAt=LATER)
    assert evaluator.allows(req("alice", Operation.UPDATE, "notifications", resource=before, new_data=marked))
    assert not evaluator.allows(req("alice", Operation.UPDATE, "notifications", resource=before, new_data=retitled))
    assert evaluator.allows(req("root", Operation.UPDATE, "notifications", resource=before, new_data=retitled))


def test_only_admin_deletes_notifications(evaluator):
    assert evaluator.allows(req("root", Operation.DELETE, "notifications"))
    assert not evaluator.allows(req("alice", Operation.DELETE, "notifications"))


# --- admin-only collections ---

@pytest.mark.parametrize("collection", ["settings", "system_logs", "backups"])
def test_admin_only_collections_reject_users(evaluator, collection):
    for operation in Operation:
        assert not evaluator.allows(req("alice", operation, collection, resource={}, new_data={}))
        assert not evaluator.allows(req(None, operation, collection, resource={}, new_data={}))


def test_settings_update_requires_timestamp(evaluator):
    assert evaluator.allows(req("root", Operation.UPDATE, "settings", resource={}, new_data={"updatedAt": NOW}))
    assert not evaluator.allows(req("root", Operation.UPDATE, "settings", resource={}, new_data={}))


def test_system_log_create_checks(evaluator):
    assert evaluator.allows(req("root", Operation.CREATE, "system_logs", new_data={"action": "Login", "timestamp": NOW}))
    assert not evaluator.allows(req("root", Operation.CREATE, "system_logs", new_data={"action": "Login"}))
    assert not evaluator.allows(req("root", Operation.CREATE, "system_logs", new_data={"action": 5, "timestamp": NOW}))


def test_backup_create_checks(evaluator):
    assert evaluator.allows(req("root", Operation.CREATE, "backups", new_data={"timestamp": NOW, "createdBy": "root"}))
    assert not evaluator.allows(req("root", Operation.CREATE, "backups", new_data={"timestamp": NOW}))
    assert not evaluator.allows(req("root", Operation.CREATE, "backups", new_data={"timestamp": "now", "createdBy": "root"}))
