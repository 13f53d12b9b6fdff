import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, status

import crud
from rules import AccessControlEvaluator, AccessRequest, AuthContext, Operation
from schemas.admin_schema import BackupRead, SettingsRead, SettingsUpdate, SystemLogCreate, SystemLogRead
from schemas.auth_schema import MessageResponse
from schemas.documents import BackupDoc, SettingsDoc, SystemLogDoc
from security import get_evaluator, get_identity, get_store
from store import (
    BACKUPS, PARKING_SPOTS, RESERVATIONS, SETTINGS, SYSTEM_LOGS, USERS, DocumentStore, server_timestamp,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# --- Settings ---

@router.get("/settings/{setting_id}", response_model=SettingsRead)
def get_settings_document(
    setting_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    return crud.with_id(crud.read_document(store, evaluator, identity, SETTINGS, setting_id))


@router.put("/settings/{setting_id}", response_model=SettingsRead)
def put_settings_document(
    setting_id: str,
    settings_update: SettingsUpdate,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    """
    Creates the settings document on first write, then updates it in place.
    Omitted fields keep their current (or default) values.
    """
    changes = settings_update.model_dump(exclude_unset=True)
    existing = store.get(SETTINGS, setting_id)
    if existing is None:
        changes["updatedAt"] = server_timestamp()
        snapshot = crud.create_document(store, evaluator, identity, SETTINGS, setting_id, changes, SettingsDoc)
    else:
        changes["updatedAt"] = server_timestamp(existing.get("updatedAt"))
        snapshot = crud.update_document(
            store, evaluator, identity, SETTINGS, setting_id, changes, SettingsDoc, existing=existing,
        )
    return crud.with_id(snapshot)


@router.delete("/settings/{setting_id}", response_model=MessageResponse)
def delete_settings_document(
    setting_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    crud.delete_document(store, evaluator, identity, SETTINGS, setting_id)
    return MessageResponse(message="Settings deleted successfully")


# --- System logs ---

@router.get("/system-logs", response_model=List[SystemLogRead])
def get_system_logs(
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    crud.authorize(evaluator, AccessRequest(
        auth=identity, operation=Operation.READ, collection=SYSTEM_LOGS, document_id="",
    ))
    logs = crud.list_documents(store, evaluator, identity, SYSTEM_LOGS)
    return [crud.with_id(log) for log in sorted(logs, key=lambda s: s.get("timestamp"), reverse=True)]


@router.post("/system-logs", response_model=SystemLogRead, status_code=status.HTTP_201_CREATED)
def create_system_log(
    log_in: SystemLogCreate,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    data = log_in.model_dump()
    data["timestamp"] = server_timestamp()
    snapshot = crud.create_document(store, evaluator, identity, SYSTEM_LOGS, None, data, SystemLogDoc)
    return crud.with_id(snapshot)


# --- Backups ---

@router.get("/backups", response_model=List[BackupRead])
def get_backups(
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    crud.authorize(evaluator, AccessRequest(
        auth=identity, operation=Operation.READ, collection=BACKUPS, document_id="",
    ))
    backups = crud.list_documents(store, evaluator, identity, BACKUPS)
    return [crud.with_id(b) for b in sorted(backups, key=lambda s: s.get("timestamp"), reverse=True)]


@router.post("/backups", response_model=BackupRead, status_code=status.HTTP_201_CREATED)
def create_backup(
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    """Records a backup entry with the current size of each main collection."""
    data = {
        "timestamp": server_timestamp(),
        "parkingSpots": store.count(PARKING_SPOTS),
        "users": store.count(USERS),
        "bookings": store.count(RESERVATIONS),
        "createdBy": identity.uid if identity else "",
    }
    snapshot = crud.create_document(store, evaluator, identity, BACKUPS, None, data, BackupDoc)
    logger.info("Backup %s recorded by %s", snapshot.id, data["createdBy"])
    return crud.with_id(snapshot)


@router.delete("/backups/{backup_id}", response_model=MessageResponse)
def delete_backup(
    backup_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    crud.delete_document(store, evaluator, identity, BACKUPS, backup_id)
    return MessageResponse(message="Backup deleted successfully")
