"""
Authorized document operations shared by the routers.

Writes validate the proposed document against its collection schema first,
because the rules inspect the typed result, then ask the evaluator and only
then touch the store. A malformed body is therefore a 400 even for a caller
who would be denied. Reads and deletes go straight to the evaluator.
Domain errors are turned into HTTP errors here, at the route boundary.
"""
import logging
from typing import Any, Callable, Dict, List, Optional, Type

from fastapi import HTTPException, status
from pydantic import BaseModel, ValidationError

from rules import AccessControlEvaluator, AccessRequest, AuthContext, Operation, PermissionDenied
from store import DocumentAlreadyExists, DocumentNotFound, DocumentSnapshot, DocumentStore

logger = logging.getLogger(__name__)


def validate_document(schema: Type[BaseModel], data: Dict[str, Any]) -> Dict[str, Any]:
    try:
        return schema.model_validate(data).model_dump()
    except ValidationError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=e.errors(include_url=False, include_context=False, include_input=False),
        )


def authorize(evaluator: AccessControlEvaluator, request: AccessRequest) -> None:
    try:
        evaluator.authorize(request)
    except PermissionDenied as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


def with_id(snapshot: DocumentSnapshot) -> Dict[str, Any]:
    return {"id": snapshot.id, **snapshot.data}


def commit(store: DocumentStore, action: str) -> None:
    try:
        store.commit()
    except Exception as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=f"Failed to {action}: {e}")


def read_document(
    store: DocumentStore,
    evaluator: AccessControlEvaluator,
    auth: Optional[AuthContext],
    collection: str,
    doc_id: str,
) -> DocumentSnapshot:
    snapshot = store.get(collection, doc_id)
    authorize(evaluator, AccessRequest(
        auth=auth,
        operation=Operation.READ,
        collection=collection,
        document_id=doc_id,
        resource=snapshot.data if snapshot else None,
    ))
    if snapshot is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found.")
    return snapshot


def list_documents(
    store: DocumentStore,
    evaluator: AccessControlEvaluator,
    auth: Optional[AuthContext],
    collection: str,
    where: Optional[Callable[[DocumentSnapshot], bool]] = None,
) -> List[DocumentSnapshot]:
    """Documents in a collection the requester is allowed to read."""
    visible = []
    for snapshot in store.stream(collection):
        if where is not None and not where(snapshot):
            continue
        request = AccessRequest(
            auth=auth,
            operation=Operation.READ,
            collection=collection,
            document_id=snapshot.id,
            resource=snapshot.data,
        )
        if evaluator.allows(request):
            visible.append(snapshot)
    return visible


def create_document(
    store: DocumentStore,
    evaluator: AccessControlEvaluator,
    auth: Optional[AuthContext],
    collection: str,
    doc_id: Optional[str],
    data: Dict[str, Any],
    schema: Type[BaseModel],
    commit_now: bool = True,
) -> DocumentSnapshot:
    proposed = validate_document(schema, data)
    authorize(evaluator, AccessRequest(
        auth=auth,
        operation=Operation.CREATE,
        collection=collection,
        document_id=doc_id or "",
        new_data=proposed,
    ))
    try:
        if doc_id is None:
            snapshot = store.add(collection, proposed)
        else:
            snapshot = store.create(collection, doc_id, proposed)
    except DocumentAlreadyExists as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if commit_now:
        commit(store, f"create {collection} document")
    return snapshot


def update_document(
    store: DocumentStore,
    evaluator: AccessControlEvaluator,
    auth: Optional[AuthContext],
    collection: str,
    doc_id: str,
    changes: Dict[str, Any],
    schema: Type[BaseModel],
    commit_now: bool = True,
    existing: Optional[DocumentSnapshot] = None,
) -> DocumentSnapshot:
    existing = existing or store.get(collection, doc_id)
    if existing is None:
        # Evaluate first so a missing document is not revealed to someone without access
        authorize(evaluator, AccessRequest(
            auth=auth, operation=Operation.UPDATE, collection=collection,
            document_id=doc_id, resource=None, new_data=changes,
        ))
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found.")

    proposed = validate_document(schema, {**existing.data, **changes})
    authorize(evaluator, AccessRequest(
        auth=auth,
        operation=Operation.UPDATE,
        collection=collection,
        document_id=doc_id,
        resource=existing.data,
        new_data=proposed,
    ))
    try:
        snapshot = store.set(collection, doc_id, proposed)
    except DocumentNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    if commit_now:
        commit(store, f"update {collection} document")
    return snapshot


def delete_document(
    store: DocumentStore,
    evaluator: AccessControlEvaluator,
    auth: Optional[AuthContext],
    collection: str,
    doc_id: str,
) -> None:
    existing = store.get(collection, doc_id)
    authorize(evaluator, AccessRequest(
        auth=auth,
        operation=Operation.DELETE,
        collection=collection,
        document_id=doc_id,
        resource=existing.data if existing else None,
    ))
    if existing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Document not found.")
    store.delete(collection, doc_id)
    commit(store, f"delete {collection} document")
    logger.info("Deleted %s/%s (by %s)", collection, doc_id, auth.uid if auth else "anonymous")
