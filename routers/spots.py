from typing import List, Optional

from fastapi import APIRouter, Depends, status

import crud
from rules import AccessControlEvaluator, AuthContext
from schemas.auth_schema import MessageResponse
from schemas.documents import ParkingSpotDoc
from schemas.parkingspot_schema import ParkingSpotCreate, ParkingSpotRead, ParkingSpotUpdate
from security import get_evaluator, get_identity, get_store
from store import PARKING_SPOTS, DocumentStore, server_timestamp

router = APIRouter(prefix="/spots", tags=["spots"])


@router.get("/", response_model=List[ParkingSpotRead])
def get_all_spots(
    active_only: bool = False,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    where = (lambda s: s.get("isActive") is True) if active_only else None
    spots = crud.list_documents(store, evaluator, identity, PARKING_SPOTS, where=where)
    return [crud.with_id(s) for s in spots]


@router.get("/available", response_model=List[ParkingSpotRead])
def get_available_spots(
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    """Active spots that still have free capacity."""
    spots = crud.list_documents(
        store, evaluator, identity, PARKING_SPOTS,
        where=lambda s: s.get("isActive") is True and (s.get("availableSpots") or 0) > 0,
    )
    return [crud.with_id(s) for s in spots]


@router.get("/{spot_id}", response_model=ParkingSpotRead)
def get_spot(
    spot_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    return crud.with_id(crud.read_document(store, evaluator, identity, PARKING_SPOTS, spot_id))


@router.post("/", response_model=ParkingSpotRead, status_code=status.HTTP_201_CREATED)
def create_parking_spot(
    spot_in: ParkingSpotCreate,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    now = server_timestamp()
    data = spot_in.model_dump()
    if data["availableSpots"] is None:
        data["availableSpots"] = data["totalSpots"]
    data.update(createdAt=now, updatedAt=now)
    snapshot = crud.create_document(store, evaluator, identity, PARKING_SPOTS, None, data, ParkingSpotDoc)
    return crud.with_id(snapshot)


@router.patch("/{spot_id}", response_model=ParkingSpotRead)
def update_parking_spot(
    spot_id: str,
    spot_update: ParkingSpotUpdate,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    changes = spot_update.model_dump(exclude_unset=True)
    changes["updatedAt"] = server_timestamp()
    snapshot = crud.update_document(store, evaluator, identity, PARKING_SPOTS, spot_id, changes, ParkingSpotDoc)
    return crud.with_id(snapshot)


@router.delete("/{spot_id}", response_model=MessageResponse)
def delete_parking_spot(
    spot_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    crud.delete_document(store, evaluator, identity, PARKING_SPOTS, spot_id)
    return MessageResponse(message="Parking spot deleted successfully")
