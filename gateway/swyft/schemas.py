from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field, constr, field_validator

from .models import RideType, UserRole

NonEmptyStr = constr(strip_whitespace=True, min_length=1)


def _alias(*names):
    return AliasChoices(*names)


# User Schemas
class UserCreate(BaseModel):
    first_name: NonEmptyStr = Field(validation_alias=_alias("first_name", "firstName"))
    last_name: NonEmptyStr = Field(validation_alias=_alias("last_name", "lastName"))
    email: NonEmptyStr
    password: NonEmptyStr
    role: UserRole
    phone: Optional[str] = None
    vehicle_plate: Optional[str] = Field(
        default=None, validation_alias=_alias("vehicle_plate", "vehiclePlate")
    )

    @field_validator("role", mode="before")
    @classmethod
    def normalize_role(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value):
        return value.lower()


class LoginRequest(BaseModel):
    email: NonEmptyStr
    password: NonEmptyStr


class LoginResponse(BaseModel):
    access_token: str
    token_type: str
    id: int
    role: str
    firstName: str
    email: str
    phone: Optional[str] = None


class DriverOut(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    phone: Optional[str] = None
    vehicle_plate: Optional[str] = None

    class Config:
        from_attributes = True


# Ride Schemas
class RideCreate(BaseModel):
    passenger_name: NonEmptyStr = Field(validation_alias=_alias("passenger_name", "passengerName"))
    passenger_email: NonEmptyStr = Field(validation_alias=_alias("passenger_email", "passengerEmail"))
    passenger_phone: NonEmptyStr = Field(validation_alias=_alias("passenger_phone", "passengerPhone"))
    pickup: NonEmptyStr = Field(validation_alias=_alias("pickup", "pickup_location"))
    dropoff: NonEmptyStr = Field(validation_alias=_alias("dropoff", "dropoff_location"))
    ride_type: RideType = Field(validation_alias=_alias("ride_type", "rideType"))
    price: float = Field(ge=0, allow_inf_nan=False, validation_alias=_alias("price", "ridePrice"))

    @field_validator("ride_type", mode="before")
    @classmethod
    def normalize_ride_type(cls, value):
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("passenger_email")
    @classmethod
    def normalize_email(cls, value):
        return value.lower()


class RideAccept(BaseModel):
    email: NonEmptyStr = Field(validation_alias=_alias("email", "driver_email"))
    phone: Optional[str] = Field(default=None, validation_alias=_alias("phone", "driver_phone"))


class RideWithdraw(BaseModel):
    passenger_email: Optional[str] = Field(
        default=None, validation_alias=_alias("passenger_email", "passengerEmail")
    )

    @field_validator("passenger_email")
    @classmethod
    def normalize_email(cls, value):
        if value is None:
            return None
        return value.strip().lower() or None


class DriverLocation(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)


class RideResponse(BaseModel):
    id: int
    passenger_name: str
    passenger_email: str
    passenger_phone: str
    pickup_location: str
    dropoff_location: str
    ride_type: str
    price: float
    driver_name: Optional[str] = None
    driver_email: Optional[str] = None
    driver_phone: Optional[str] = None
    driver_vehicle: Optional[str] = None
    driver_assigned: bool
    driver_lat: Optional[float] = None
    driver_lng: Optional[float] = None
    status: str
    created_at: datetime
    completed_at: Optional[datetime] = None
    canceled_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def ride_payload(ride) -> dict:
    """JSON-ready representation of a ride, as pushed over websockets."""
    return RideResponse.model_validate(ride).model_dump(mode="json")
