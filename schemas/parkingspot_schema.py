from pydantic import BaseModel, Field
from typing import Optional

from schemas.documents import Location, ParkingSpotDoc


class ParkingSpotCreate(BaseModel):
    name: str
    description: Optional[str] = None
    address: str
    location: Location
    totalSpots: int = Field(..., ge=0)
    availableSpots: Optional[int] = Field(None, ge=0) # defaults to totalSpots
    pricePerHour: float = Field(..., ge=0)
    hasEVCharging: bool = False
    evChargingPrice: float = Field(0.0, ge=0)
    isActive: bool = True

class ParkingSpotUpdate(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    address: Optional[str] = None
    location: Optional[Location] = None
    totalSpots: Optional[int] = Field(None, ge=0)
    availableSpots: Optional[int] = Field(None, ge=0)
    pricePerHour: Optional[float] = Field(None, ge=0)
    hasEVCharging: Optional[bool] = None
    evChargingPrice: Optional[float] = Field(None, ge=0)
    isActive: Optional[bool] = None

class ParkingSpotRead(ParkingSpotDoc):
    id: str
