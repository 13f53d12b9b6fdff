import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status

import crud
from rules import AccessControlEvaluator, AuthContext
from schemas.auth_schema import MessageResponse
from schemas.documents import NotificationDoc
from schemas.notification_schema import NotificationCreate, NotificationRead, NotificationUpdate
from security import get_evaluator, get_identity, get_store, require_identity
from store import NOTIFICATIONS, DocumentStore, server_timestamp

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.post("/", response_model=NotificationRead, status_code=status.HTTP_201_CREATED)
def send_notification(
    notification: NotificationCreate,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    """Admins send a notification either to everyone or to a single user."""
    now = server_timestamp()
    data = notification.model_dump()
    data.update(
        sentBy=identity.uid if identity else "system",
        sentAt=now,
        readBy=[],
        createdAt=now,
        updatedAt=now,
    )
    snapshot = crud.create_document(store, evaluator, identity, NOTIFICATIONS, None, data, NotificationDoc)
    logger.info("Notification %s sent to %s", snapshot.id, data["recipientId"] or "all")
    return crud.with_id(snapshot)


@router.get("/", response_model=List[NotificationRead])
def get_notifications(
    unread_only: bool = False,
    identity: AuthContext = Depends(require_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    where = (lambda s: identity.uid not in (s.get("readBy") or [])) if unread_only else None
    notifications = crud.list_documents(store, evaluator, identity, NOTIFICATIONS, where=where)
    return [crud.with_id(n) for n in notifications]


@router.get("/{notification_id}", response_model=NotificationRead)
def get_notification(
    notification_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    return crud.with_id(crud.read_document(store, evaluator, identity, NOTIFICATIONS, notification_id))


@router.post("/{notification_id}/read", response_model=NotificationRead)
def mark_as_read(
    notification_id: str,
    identity: AuthContext = Depends(require_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    existing = crud.read_document(store, evaluator, identity, NOTIFICATIONS, notification_id)
    read_by = list(existing.get("readBy") or [])
    if identity.uid in read_by:
        return crud.with_id(existing)
    read_by.append(identity.uid)
    snapshot = crud.update_document(
        store, evaluator, identity, NOTIFICATIONS, notification_id,
        {"readBy": read_by, "updatedAt": server_timestamp(existing.get("updatedAt"))},
        NotificationDoc, existing=existing,
    )
    return crud.with_id(snapshot)


@router.patch("/{notification_id}", response_model=NotificationRead)
def update_notification(
    notification_id: str,
    notification_update: NotificationUpdate,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    changes = notification_update.model_dump(exclude_unset=True)
    changes["updatedAt"] = server_timestamp()
    snapshot = crud.update_document(store, evaluator, identity, NOTIFICATIONS, notification_id, changes, NotificationDoc)
    return crud.with_id(snapshot)


@router.delete("/{notification_id}", response_model=MessageResponse)
def delete_notification(
    notification_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    crud.delete_document(store, evaluator, identity, NOTIFICATIONS, notification_id)
    return MessageResponse(message="Notification deleted successfully")
