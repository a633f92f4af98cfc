"""Ride persistence.

Every state change is issued as one ``UPDATE ... WHERE <precondition>``
statement and judged by its affected row count, so two requests racing on
the same ride can never both win. The row is only read back afterwards, to
return it or to explain why the update matched nothing.
"""
import logging
from datetime import datetime
from functools import wraps
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import ConflictError, InvalidStateError, NotFoundError, StoreError, ValidationError
from .models import ACTIVE_STATUSES, Ride, RideStatus, User, UserRole
from .schemas import RideCreate

logger = logging.getLogger(__name__)

STATUS_ALIASES = {"cancelled": RideStatus.canceled.value}
STATUS_VALUES = {status.value for status in RideStatus}


def store_operation(func):
    """Roll back and report database failures as StoreError."""

    @wraps(func)
    def wrapper(db: Session, *args, **kwargs):
        try:
            return func(db, *args, **kwargs)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception("[Store] %s failed", func.__name__)
            raise StoreError("Ride store unavailable") from e

    return wrapper


def parse_statuses(raw: Optional[str]) -> Optional[List[str]]:
    """Turn ``"accepted, in_progress"`` into a validated list of statuses."""
    if not raw:
        return None
    statuses = []
    for item in raw.split(","):
        item = item.strip().lower()
        if not item:
            continue
        item = STATUS_ALIASES.get(item, item)
        if item not in STATUS_VALUES:
            raise ValidationError(f"Unknown ride status: {item}")
        statuses.append(item)
    return statuses or None


def _conditional_update(db: Session, ride_id: int, conditions, values: dict) -> bool:
    stmt = (
        update(Ride)
        .where(Ride.id == ride_id, *conditions)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    db.commit()
    return result.rowcount == 1


def _load(db: Session, ride_id: int) -> Optional[Ride]:
    # populate_existing: the session may hold a copy from before the UPDATE
    return db.execute(
        select(Ride).where(Ride.id == ride_id).execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _require(db: Session, ride_id: int) -> Ride:
    ride = _load(db, ride_id)
    if ride is None:
        raise NotFoundError("Ride not found")
    return ride


@store_operation
def create_ride(db: Session, data: RideCreate) -> Ride:
    ride = Ride(
        passenger_name=data.passenger_name,
        passenger_email=data.passenger_email,
        passenger_phone=data.passenger_phone,
        pickup_location=data.pickup,
        dropoff_location=data.dropoff,
        ride_type=data.ride_type.value,
        price=data.price,
        driver_assigned=False,
        status=RideStatus.pending.value,
        created_at=datetime.utcnow(),
    )
    db.add(ride)
    db.commit()
    db.refresh(ride)
    logger.info("[Store] Ride %s created for %s", ride.id, ride.passenger_email)
    return ride


@store_operation
def get_ride(db: Session, ride_id: int) -> Ride:
    return _require(db, ride_id)


@store_operation
def list_rides(
    db: Session,
    passenger_email: Optional[str] = None,
    driver_email: Optional[str] = None,
    statuses: Optional[Iterable[str]] = None,
) -> List[Ride]:
    stmt = select(Ride)
    if passenger_email:
        stmt = stmt.where(Ride.passenger_email == passenger_email)
    if driver_email:
        stmt = stmt.where(Ride.driver_email == driver_email)
    if statuses:
        stmt = stmt.where(Ride.status.in_(list(statuses)))
    stmt = stmt.order_by(Ride.created_at.desc(), Ride.id.desc())
    return list(db.execute(stmt).scalars().all())


@store_operation
def list_active_rides(db: Session, driver_email: str) -> List[Ride]:
    stmt = (
        select(Ride)
        .where(
            Ride.driver_email == driver_email,
            Ride.driver_assigned == True,  # noqa: E712
            Ride.status.in_(ACTIVE_STATUSES),
        )
        .order_by(Ride.created_at.desc(), Ride.id.desc())
    )
    return list(db.execute(stmt).scalars().all())


@store_operation
def find_driver(db: Session, email: str) -> User:
    driver = db.execute(
        select(User).where(User.email == email.strip().lower(), User.role == UserRole.driver.value)
    ).scalar_one_or_none()
    if driver is None:
        raise NotFoundError("Driver not found")
    return driver


@store_operation
def accept_ride(db: Session, ride_id: int, driver_email: str, driver_phone: Optional[str] = None) -> Ride:
    driver = find_driver(db, driver_email)
    accepted = _conditional_update(
        db,
        ride_id,
        (Ride.driver_assigned == False, Ride.status == RideStatus.pending.value),  # noqa: E712
        {
            "driver_name": driver.full_name,
            "driver_email": driver.email,
            "driver_phone": driver_phone or driver.phone,
            "driver_vehicle": driver.vehicle_plate,
            "driver_assigned": True,
            "status": RideStatus.accepted.value,
        },
    )
    ride = _require(db, ride_id)
    if not accepted:
        if ride.driver_assigned:
            raise ConflictError("Ride already assigned to a driver")
        raise InvalidStateError(f"Ride cannot be accepted while {ride.status}")
    logger.info("[Store] Ride %s accepted by %s", ride_id, driver.email)
    return ride


@store_operation
def start_ride(db: Session, ride_id: int) -> Ride:
    started = _conditional_update(
        db,
        ride_id,
        (Ride.driver_assigned == True, Ride.status == RideStatus.accepted.value),  # noqa: E712
        {"status": RideStatus.in_progress.value},
    )
    ride = _require(db, ride_id)
    if not started:
        if not ride.driver_assigned:
            raise InvalidStateError("No driver assigned to this ride")
        raise InvalidStateError(f"Ride cannot be started while {ride.status}")
    return ride


@store_operation
def complete_ride(db: Session, ride_id: int) -> Ride:
    completed = _conditional_update(
        db,
        ride_id,
        (Ride.status.in_(ACTIVE_STATUSES),),
        {"status": RideStatus.completed.value, "completed_at": datetime.utcnow()},
    )
    ride = _require(db, ride_id)
    if not completed:
        raise InvalidStateError(f"Ride cannot be completed while {ride.status}")
    return ride


@store_operation
def cancel_ride(db: Session, ride_id: int) -> Ride:
    canceled = _conditional_update(
        db,
        ride_id,
        (Ride.driver_assigned == True, Ride.status.in_(ACTIVE_STATUSES)),  # noqa: E712
        {"status": RideStatus.canceled.value, "canceled_at": datetime.utcnow()},
    )
    if not canceled:
        raise NotFoundError("Ride not found or not cancelable")
    return _require(db, ride_id)


@store_operation
def withdraw_ride(db: Session, ride_id: int, passenger_email: Optional[str] = None) -> Ride:
    """Passenger-side cancellation of a ride no driver has taken yet."""
    conditions = [Ride.driver_assigned == False, Ride.status == RideStatus.pending.value]  # noqa: E712
    if passenger_email:
        conditions.append(Ride.passenger_email == passenger_email)
    withdrawn = _conditional_update(
        db,
        ride_id,
        conditions,
        {"status": RideStatus.canceled.value, "canceled_at": datetime.utcnow()},
    )
    ride = _require(db, ride_id)
    if not withdrawn:
        if passenger_email and ride.passenger_email != passenger_email:
            raise NotFoundError("Ride not found")
        if ride.driver_assigned:
            raise ConflictError("Ride already assigned to a driver")
        raise InvalidStateError(f"Ride cannot be withdrawn while {ride.status}")
    return ride


@store_operation
def update_driver_location(db: Session, ride_id: int, lat: float, lng: float) -> Ride:
    updated = _conditional_update(
        db,
        ride_id,
        (Ride.driver_assigned == True, Ride.status.in_(ACTIVE_STATUSES)),  # noqa: E712
        {"driver_lat": lat, "driver_lng": lng},
    )
    ride = _require(db, ride_id)
    if not updated:
        raise InvalidStateError(f"Driver location cannot be updated while ride is {ride.status}")
    return ride
