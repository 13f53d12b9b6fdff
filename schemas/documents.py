"""
Stored document shapes, one per collection.

Field names are camelCase because that is how documents are stored and how the
mobile client reads them. Every write is validated against these models before
it reaches the store.
"""
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class StoredDocument(BaseModel):
    model_config = ConfigDict(extra="allow")


# --- users ---

class UserDoc(StoredDocument):
    email: str
    name: str
    createdAt: datetime
    updatedAt: datetime
    isEmailVerified: bool = False
    profileCompleted: bool = False
    role: Literal["user", "admin"] = "user"
    status: Literal["active", "blocked"] = "active"
    phoneNumber: Optional[str] = None
    photoURL: Optional[str] = None
    gender: Optional[Literal["Male", "Female", "Other"]] = None
    dateOfBirth: Optional[str] = None
    twoFactorEnabled: bool = False

    @field_validator("dateOfBirth")
    @classmethod
    def iso_date(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            date.fromisoformat(value[:10])
        return value


# --- parking spots ---

class Location(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)


class ParkingSpotDoc(StoredDocument):
    name: str
    description: Optional[str] = None
    address: str
    location: Location
    totalSpots: int = Field(..., ge=0)
    availableSpots: int = Field(..., ge=0)
    pricePerHour: float = Field(..., ge=0)
    hasEVCharging: bool = False
    evChargingPrice: float = Field(0.0, ge=0)
    isActive: bool = True
    createdAt: datetime
    updatedAt: datetime

    @model_validator(mode="after")
    def capacity(self):
        if self.availableSpots > self.totalSpots:
            raise ValueError("availableSpots cannot exceed totalSpots")
        return self


# --- reservations ---

class ReservationDoc(StoredDocument):
    userId: str
    spotId: str
    startTime: datetime
    endTime: datetime
    duration: str
    price: float = Field(..., ge=0)
    status: Literal["active", "completed", "cancelled"] = "active"
    createdAt: datetime
    updatedAt: datetime

    @model_validator(mode="after")
    def time_window(self):
        if self.endTime <= self.startTime:
            raise ValueError("endTime must be after startTime")
        return self


# --- notifications ---

class NotificationDoc(StoredDocument):
    title: str
    message: str
    type: Literal["general", "booking", "system", "promotion"] = "general"
    recipientType: Literal["all", "user"] = "all"
    recipientId: Optional[str] = None
    sentBy: str
    sentAt: datetime
    readBy: List[str] = Field(default_factory=list)
    createdAt: datetime
    updatedAt: datetime

    @model_validator(mode="after")
    def recipient(self):
        if self.recipientType == "user" and not self.recipientId:
            raise ValueError("recipientId is required when recipientType is 'user'")
        if self.recipientType == "all" and self.recipientId is not None:
            raise ValueError("recipientId must be empty when recipientType is 'all'")
        return self


# --- admin-only collections ---

class PaymentMethods(BaseModel):
    creditCard: bool = True
    fawry: bool = True
    vodafoneCash: bool = True
    paypal: bool = False


class NotificationChannels(BaseModel):
    push: bool = True
    email: bool = True
    sms: bool = False


class SettingsDoc(StoredDocument):
    commissionRate: float = Field(10.0, ge=0, le=100)
    paymentMethods: PaymentMethods = Field(default_factory=PaymentMethods)
    notifications: NotificationChannels = Field(default_factory=NotificationChannels)
    appVersion: str = "1.0.0"
    updatedAt: datetime


class SystemLogDoc(StoredDocument):
    action: str
    userId: Optional[str] = None
    timestamp: datetime


class BackupDoc(StoredDocument):
    timestamp: datetime
    parkingSpots: int = Field(..., ge=0)
    users: int = Field(..., ge=0)
    bookings: int = Field(..., ge=0)
    createdBy: str
