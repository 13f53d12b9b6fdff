"""
Privileged operations for operators.

These work on the store directly with the database connection and never go
through the access rules, so they are only reachable from admin_cli.py.
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from store import (
    BACKUPS, NOTIFICATIONS, PARKING_SPOTS, RESERVATIONS, SETTINGS, SYSTEM_LOGS, USERS,
    DocumentSnapshot, DocumentStore, server_timestamp,
)

logger = logging.getLogger(__name__)

COLLECTION_INFO_ID = "_collection_info"

COLLECTION_INFO: Dict[str, Dict[str, Any]] = {
    USERS: {
        "description": "Users collection",
        "schema": {
            "email": "string (required)",
            "name": "string (required)",
            "createdAt": "timestamp (required)",
            "updatedAt": "timestamp (required)",
            "phoneNumber": "string (optional)",
            "photoURL": "string (optional)",
            "isEmailVerified": "boolean (required, default: false)",
            "profileCompleted": "boolean (required, default: false)",
            "gender": "string (optional: Male, Female, Other)",
            "dateOfBirth": "string (optional: ISO8601 date string)",
            "role": "string (required, default: user, values: user, admin)",
            "status": "string (required, default: active, values: active, blocked)",
            "twoFactorEnabled": "boolean (optional, default: false)",
        },
    },
    PARKING_SPOTS: {
        "description": "Parking spots collection",
        "schema": {
            "name": "string (required)",
            "description": "string (optional)",
            "address": "string (required)",
            "location": "object (required, {lat: number, lng: number})",
            "totalSpots": "number (required)",
            "availableSpots": "number (required, 0..totalSpots)",
            "pricePerHour": "number (required)",
            "hasEVCharging": "boolean (optional, default: false)",
            "evChargingPrice": "number (optional, default: 0.0)",
            "isActive": "boolean (required, default: true)",
            "createdAt": "timestamp (required)",
            "updatedAt": "timestamp (required)",
        },
    },
    NOTIFICATIONS: {
        "description": "Notifications collection",
        "schema": {
            "title": "string (required)",
            "message": "string (required)",
            "type": "string (required, values: general, booking, system, promotion)",
            "recipientType": "string (required, values: all, user)",
            "recipientId": "string (optional, userId if recipientType is user)",
            "sentBy": "string (required, system or admin_userId)",
            "sentAt": "timestamp (required)",
            "readBy": "array (optional, array of user IDs)",
            "createdAt": "timestamp (required)",
            "updatedAt": "timestamp (required)",
        },
    },
    RESERVATIONS: {
        "description": "Reservations collection",
        "schema": {
            "userId": "string (required)",
            "spotId": "string (required)",
            "startTime": "timestamp (required)",
            "endTime": "timestamp (required)",
            "duration": "string (required, e.g., \"2 hours\")",
            "price": "number (required)",
            "status": "string (required, values: active, completed, cancelled)",
            "createdAt": "timestamp (required)",
            "updatedAt": "timestamp (required)",
        },
    },
    SETTINGS: {
        "description": "App settings collection (admin only)",
        "schema": {
            "commissionRate": "number (required, default: 10.0)",
            "paymentMethods": "object (required, {creditCard, fawry, vodafoneCash, paypal: boolean})",
            "notifications": "object (required, {push, email, sms: boolean})",
            "appVersion": "string (required, default: \"1.0.0\")",
            "updatedAt": "timestamp (required)",
        },
    },
    SYSTEM_LOGS: {
        "description": "System logs collection (admin only)",
        "schema": {
            "action": "string (required, e.g., \"User login\", \"Booking created\")",
            "userId": "string (optional, user ID who performed the action)",
            "timestamp": "timestamp (required)",
        },
    },
    BACKUPS: {
        "description": "Backups collection (admin only)",
        "schema": {
            "timestamp": "timestamp (required)",
            "parkingSpots": "number (required, count of parking spots)",
            "users": "number (required, count of users)",
            "bookings": "number (required, count of bookings)",
            "createdBy": "string (required, admin user ID)",
        },
    },
}


class UserNotFound(Exception):
    def __init__(self, email: str):
        super().__init__(f"User not found: {email}")
        self.email = email


@dataclass
class UserMatch:
    snapshot: DocumentSnapshot
    exact: bool

    @property
    def id(self) -> str:
        return self.snapshot.id

    @property
    def data(self) -> Dict[str, Any]:
        return self.snapshot.data


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def describe_user(snapshot: DocumentSnapshot) -> Dict[str, str]:
    data = snapshot.data
    return {
        "id": snapshot.id,
        "name": data.get("name") or "N/A",
        "email": data.get("email") or "N/A",
        "role": data.get("role") or "user",
        "status": data.get("status") or "active",
    }


def list_users(store: DocumentStore) -> List[DocumentSnapshot]:
    return store.stream(USERS)


def find_users_by_email(store: DocumentStore, email: str) -> List[UserMatch]:
    """
    Exact match on the stored email first; when that finds nothing, every
    user is scanned and compared case-insensitively after trimming.
    """
    exact = store.where(USERS, "email", email)
    if exact:
        return [UserMatch(snapshot, exact=True) for snapshot in exact]

    wanted = normalize_email(email)
    return [
        UserMatch(snapshot, exact=False)
        for snapshot in store.stream(USERS)
        if normalize_email(snapshot.data.get("email")) == wanted
    ]


def find_user_by_email(store: DocumentStore, email: str) -> UserMatch:
    matches = find_users_by_email(store, email)
    if not matches:
        raise UserNotFound(email)
    return matches[0]


def promote_to_admin(store: DocumentStore, user_id: str) -> DocumentSnapshot:
    """Sets role to admin and refreshes updatedAt. There is no undo."""
    current = store.get(USERS, user_id)
    previous = current.data.get("updatedAt") if current else None
    snapshot = store.update(USERS, user_id, {
        "role": "admin",
        "updatedAt": server_timestamp(previous),
    })
    store.commit()
    logger.info("User %s promoted to admin", user_id)
    return snapshot


def seed_collections(store: DocumentStore) -> List[str]:
    """Writes the _collection_info metadata document into every collection."""
    seeded = []
    for collection, info in COLLECTION_INFO.items():
        store.set(collection, COLLECTION_INFO_ID, {**info, "createdAt": server_timestamp()})
        seeded.append(collection)
    store.commit()
    return seeded
