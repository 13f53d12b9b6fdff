import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

import crud
from rules import DENIED_MESSAGE, AccessControlEvaluator, AccessRequest, AuthContext, Operation
from schemas.auth_schema import MessageResponse
from schemas.documents import UserDoc
from schemas.userSchema import UserCreate, UserRead, UserUpdate
from security import get_evaluator, get_identity, get_store
from store import USERS, DocumentStore, server_timestamp

logger = logging.getLogger(__name__)

user_router = APIRouter(prefix="/users", tags=["Users"])

# Changing these needs an admin even though the profile owner may edit the rest
ADMIN_MANAGED_FIELDS = ("role", "status")


@user_router.post("/{user_id}", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user_profile(
    user_id: str,
    user_in: UserCreate,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    """
    Creates the profile document for a signed-in account.
    Only the account itself may create its profile; timestamps are set here.
    """
    now = server_timestamp()
    data = user_in.model_dump()
    data.update(createdAt=now, updatedAt=now)
    snapshot = crud.create_document(store, evaluator, identity, USERS, user_id, data, UserDoc)
    logger.info("Created profile for %s", user_id)
    return crud.with_id(snapshot)


@user_router.get("/", response_model=List[UserRead])
def get_all_users(
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    """
    Lists the profiles the requester may read.
    Admins see every user; everyone else sees only their own profile.
    """
    return [crud.with_id(s) for s in crud.list_documents(store, evaluator, identity, USERS)]


@user_router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    return crud.with_id(crud.read_document(store, evaluator, identity, USERS, user_id))


@user_router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: str,
    user_update: UserUpdate,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    changes = user_update.model_dump(exclude_unset=True)
    existing = store.get(USERS, user_id)

    if existing is not None and any(
        key in changes and changes[key] != existing.data.get(key) for key in ADMIN_MANAGED_FIELDS
    ):
        admin_check = AccessRequest(auth=identity, operation=Operation.UPDATE, collection=USERS, document_id=user_id)
        if not evaluator.is_admin(admin_check):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=DENIED_MESSAGE)

    previous = existing.data.get("updatedAt") if existing else None
    changes["updatedAt"] = server_timestamp(previous)
    snapshot = crud.update_document(store, evaluator, identity, USERS, user_id, changes, UserDoc, existing=existing)
    return crud.with_id(snapshot)


@user_router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    crud.delete_document(store, evaluator, identity, USERS, user_id)
    return MessageResponse(message="User deleted successfully")
