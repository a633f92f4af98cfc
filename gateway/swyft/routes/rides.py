import logging
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, Query, Request
from sqlalchemy.orm import Session

from .. import store
from ..database import get_db
from ..errors import ValidationError
from ..models import Ride
from ..notifier import Notifier
from ..schemas import DriverLocation, RideAccept, RideCreate, RideResponse, RideWithdraw, ride_payload
from ..ws_manager import ride_room

router = APIRouter(prefix="/api", tags=["Rides"])
logger = logging.getLogger(__name__)


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def publish_ride_updated(notifier: Notifier, ride: Ride):
    logger.info("[Rides] Ride %s is now %s", ride.id, ride.status)
    notifier.publish(
        "rideUpdated",
        ride_payload(ride),
        rooms=(ride.passenger_email, ride.driver_email, ride_room(ride.id)),
        broadcast=True,
    )


@router.post("/rides", status_code=201)
def create_ride(ride: RideCreate, db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)):
    db_ride = store.create_ride(db, ride)
    logger.info("[Rides] Publishing newRide for ride %s", db_ride.id)
    notifier.publish("newRide", ride_payload(db_ride), broadcast=True)
    return {"message": "Ride booked successfully", "rideId": db_ride.id}


@router.get("/rides", response_model=List[RideResponse])
def list_rides(
    passenger_email: Optional[str] = None,
    driver_email: Optional[str] = None,
    status: Optional[str] = Query(default=None, description="Comma separated statuses"),
    db: Session = Depends(get_db),
):
    return store.list_rides(
        db,
        passenger_email=passenger_email.strip().lower() if passenger_email else None,
        driver_email=driver_email.strip().lower() if driver_email else None,
        statuses=store.parse_statuses(status),
    )


@router.get("/rides/{ride_id}", response_model=RideResponse)
def get_ride(ride_id: int, db: Session = Depends(get_db)):
    return store.get_ride(db, ride_id)


@router.post("/rides/{ride_id}/accept")
def accept_ride(
    ride_id: int,
    driver: RideAccept,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    db_ride = store.accept_ride(db, ride_id, driver.email, driver.phone)
    publish_ride_updated(notifier, db_ride)
    return {
        "message": "Ride accepted",
        "driver_name": db_ride.driver_name,
        "vehicle": db_ride.driver_vehicle,
        "ride": ride_payload(db_ride),
    }


@router.post("/rides/{ride_id}/start")
def start_ride(ride_id: int, db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)):
    db_ride = store.start_ride(db, ride_id)
    publish_ride_updated(notifier, db_ride)
    return {"message": "Ride started", "rideId": db_ride.id}


@router.post("/rides/{ride_id}/complete")
def complete_ride(ride_id: int, db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)):
    db_ride = store.complete_ride(db, ride_id)
    publish_ride_updated(notifier, db_ride)
    return {"message": "Ride completed", "ride": ride_payload(db_ride)}


@router.post("/rides/{ride_id}/cancel")
def cancel_ride(ride_id: int, db: Session = Depends(get_db), notifier: Notifier = Depends(get_notifier)):
    db_ride = store.cancel_ride(db, ride_id)
    publish_ride_updated(notifier, db_ride)
    return {"message": "Ride canceled", "ride": ride_payload(db_ride)}


@router.post("/rides/{ride_id}/withdraw")
def withdraw_ride(
    ride_id: int,
    body: Optional[RideWithdraw] = Body(default=None),
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    passenger_email = body.passenger_email if body else None
    db_ride = store.withdraw_ride(db, ride_id, passenger_email)
    publish_ride_updated(notifier, db_ride)
    return {"message": "Ride withdrawn", "ride": ride_payload(db_ride)}


@router.post("/rides/{ride_id}/driver-location")
def update_driver_location(
    ride_id: int,
    location: DriverLocation,
    db: Session = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
):
    db_ride = store.update_driver_location(db, ride_id, location.lat, location.lng)
    logger.debug("[Rides] Driver location for ride %s: %s, %s", db_ride.id, db_ride.driver_lat, db_ride.driver_lng)
    notifier.publish(
        "driverLocationUpdated",
        {"rideId": db_ride.id, "lat": db_ride.driver_lat, "lng": db_ride.driver_lng},
        rooms=(db_ride.passenger_email, ride_room(db_ride.id)),
        broadcast=True,
    )
    return {"message": "Driver location updated", "rideId": db_ride.id}


@router.get("/active-rides", response_model=List[RideResponse])
def list_active_rides(driver_email: Optional[str] = None, db: Session = Depends(get_db)):
    if not driver_email or not driver_email.strip():
        raise ValidationError("driver_email is required")
    return store.list_active_rides(db, driver_email.strip().lower())
