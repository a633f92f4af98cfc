import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Float, Index, Integer, String

from .database import Base


class RideStatus(str, enum.Enum):
    pending = "pending"
    accepted = "accepted"
    in_progress = "in_progress"
    completed = "completed"
    canceled = "canceled"


class RideType(str, enum.Enum):
    economy = "economy"
    premium = "premium"
    luxury = "luxury"


class UserRole(str, enum.Enum):
    passenger = "passenger"
    driver = "driver"


# Statuses in which a driver is on the way or on the trip
ACTIVE_STATUSES = (RideStatus.accepted.value, RideStatus.in_progress.value)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=UserRole.passenger.value)
    phone = Column(String(50), nullable=True)
    vehicle_plate = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_driver(self):
        return self.role == UserRole.driver.value


class Ride(Base):
    __tablename__ = "rides"

    id = Column(Integer, primary_key=True, index=True)

    passenger_name = Column(String(255), nullable=False)
    passenger_email = Column(String(255), nullable=False, index=True)
    passenger_phone = Column(String(50), nullable=False)

    pickup_location = Column(String(500), nullable=False)
    dropoff_location = Column(String(500), nullable=False)
    ride_type = Column(String(20), nullable=False)
    price = Column(Float, nullable=False)

    driver_name = Column(String(255), nullable=True)
    driver_email = Column(String(255), nullable=True, index=True)
    driver_phone = Column(String(50), nullable=True)
    driver_vehicle = Column(String(50), nullable=True)
    driver_assigned = Column(Boolean, nullable=False, default=False)
    driver_lat = Column(Float, nullable=True)
    driver_lng = Column(Float, nullable=True)

    status = Column(String(20), nullable=False, default=RideStatus.pending.value)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    completed_at = Column(DateTime, nullable=True)
    canceled_at = Column(DateTime, nullable=True)

    __table_args__ = (Index("ix_rides_status_created_at", "status", "created_at"),)
