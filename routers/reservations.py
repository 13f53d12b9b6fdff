import logging
from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

import crud
from rules import AccessControlEvaluator, AccessRequest, AuthContext, Operation
from schemas.auth_schema import MessageResponse
from schemas.documents import ParkingSpotDoc, ReservationDoc
from schemas.reservationsSchema import ReservationCreate, ReservationRead
from security import get_evaluator, get_identity, get_store
from store import PARKING_SPOTS, RESERVATIONS, DocumentStore, DocumentSnapshot, as_utc, server_timestamp

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reservations", tags=["reservations"])


def format_duration(delta: timedelta) -> str:
    minutes = int(round(delta.total_seconds() / 60))
    if minutes < 60:
        return f"{minutes} minute" if minutes == 1 else f"{minutes} minutes"
    hours = round(minutes / 60, 2)
    return f"{hours:g} hour" if hours == 1 else f"{hours:g} hours"


def calculate_price(price_per_hour: float, delta: timedelta) -> float:
    return round(price_per_hour * delta.total_seconds() / 3600, 2)


def release_spot(store, evaluator, identity, spot_id: str) -> None:
    """Gives a place back to the spot, never above its total capacity."""
    spot = store.get(PARKING_SPOTS, spot_id, for_update=True)
    if spot is None:
        logger.warning("Reservation references missing spot %s; nothing to release", spot_id)
        return
    available = min(spot.get("availableSpots", 0) + 1, spot.get("totalSpots", 0))
    crud.update_document(
        store, evaluator, identity, PARKING_SPOTS, spot_id,
        {"availableSpots": available, "updatedAt": server_timestamp()},
        ParkingSpotDoc, commit_now=False, existing=spot,
    )


@router.post("/", response_model=ReservationRead, status_code=status.HTTP_201_CREATED)
def create_reservation(
    res: ReservationCreate,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    spot = store.get(PARKING_SPOTS, res.spotId, for_update=True)
    if not spot:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Parking spot not found")

    start_time = as_utc(res.startTime)
    end_time = as_utc(res.endTime)
    now = server_timestamp()
    if start_time < now:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Reservation start time cannot be in the past.")
    if end_time <= start_time:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Reservation end time must be after start time.")

    if not spot.get("isActive", False):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Parking spot is not active.")
    if spot.get("availableSpots", 0) <= 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No available spots at this location.")

    delta = end_time - start_time
    data = {
        "userId": res.userId or (identity.uid if identity else ""),
        "spotId": res.spotId,
        "startTime": start_time,
        "endTime": end_time,
        "duration": format_duration(delta),
        "price": calculate_price(spot.get("pricePerHour", 0.0), delta),
        "status": "active",
        "createdAt": now,
        "updatedAt": now,
    }
    reservation = crud.create_document(
        store, evaluator, identity, RESERVATIONS, None, data, ReservationDoc, commit_now=False,
    )

    # Same transaction as the reservation insert
    crud.update_document(
        store, evaluator, identity, PARKING_SPOTS, spot.id,
        {"availableSpots": spot.get("availableSpots") - 1, "updatedAt": server_timestamp()},
        ParkingSpotDoc, commit_now=False, existing=spot,
    )
    crud.commit(store, "create reservation")
    logger.info("Reservation %s created for user %s at spot %s", reservation.id, data["userId"], spot.id)
    return crud.with_id(reservation)


@router.get("/user/{user_id}", response_model=List[ReservationRead])
def get_user_reservations(
    user_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    reservations = crud.list_documents(
        store, evaluator, identity, RESERVATIONS, where=lambda s: s.get("userId") == user_id,
    )
    return [crud.with_id(r) for r in reservations]


@router.get("/{reservation_id}", response_model=ReservationRead)
def get_reservation(
    reservation_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    return crud.with_id(crud.read_document(store, evaluator, identity, RESERVATIONS, reservation_id))


def _finish_reservation(
    reservation_id: str,
    new_status: str,
    identity: Optional[AuthContext],
    store: DocumentStore,
    evaluator: AccessControlEvaluator,
) -> DocumentSnapshot:
    existing = store.get(RESERVATIONS, reservation_id)
    if existing is not None and existing.get("status") != "active":
        crud.authorize(evaluator, AccessRequest(
            auth=identity, operation=Operation.UPDATE, collection=RESERVATIONS,
            document_id=reservation_id, resource=existing.data,
        ))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Reservation is already {existing.get('status')}.",
        )

    snapshot = crud.update_document(
        store, evaluator, identity, RESERVATIONS, reservation_id,
        {"status": new_status, "updatedAt": server_timestamp(existing.get("updatedAt") if existing else None)},
        ReservationDoc, commit_now=False, existing=existing,
    )
    release_spot(store, evaluator, identity, snapshot.get("spotId"))
    crud.commit(store, f"mark reservation {new_status}")
    return snapshot


@router.post("/{reservation_id}/cancel", response_model=ReservationRead)
def cancel_reservation(
    reservation_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    return crud.with_id(_finish_reservation(reservation_id, "cancelled", identity, store, evaluator))


@router.post("/{reservation_id}/complete", response_model=ReservationRead)
def complete_reservation(
    reservation_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    return crud.with_id(_finish_reservation(reservation_id, "completed", identity, store, evaluator))


@router.delete("/{reservation_id}", response_model=MessageResponse)
def delete_reservation(
    reservation_id: str,
    identity: Optional[AuthContext] = Depends(get_identity),
    store: DocumentStore = Depends(get_store),
    evaluator: AccessControlEvaluator = Depends(get_evaluator),
):
    existing = store.get(RESERVATIONS, reservation_id)
    crud.authorize(evaluator, AccessRequest(
        auth=identity, operation=Operation.DELETE, collection=RESERVATIONS,
        document_id=reservation_id, resource=existing.data if existing else None,
    ))
    if existing is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Reservation not found.")

    if existing.get("status") == "active":
        release_spot(store, evaluator, identity, existing.get("spotId"))
    store.delete(RESERVATIONS, reservation_id)
    crud.commit(store, "delete reservation")
    return MessageResponse(message="Reservation deleted successfully")
