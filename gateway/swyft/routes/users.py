from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import auth
from ..database import get_db
from ..errors import AuthenticationError, NotFoundError, ValidationError
from ..models import User, UserRole
from ..schemas import DriverOut, LoginRequest, LoginResponse, UserCreate

router = APIRouter(prefix="/api", tags=["Users"])


@router.post("/users", status_code=status.HTTP_201_CREATED)
def signup(user: UserCreate, db: Session = Depends(get_db)):
    if user.role == UserRole.driver and not (user.vehicle_plate or "").strip():
        raise ValidationError("Vehicle plate required for drivers")
    if db.execute(select(User).where(User.email == user.email)).scalar_one_or_none():
        raise ValidationError("Email already exists")

    db_user = User(
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        password_hash=auth.hash_password(user.password),
        role=user.role.value,
        phone=user.phone,
        vehicle_plate=user.vehicle_plate.strip() if user.role == UserRole.driver else None,
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ValidationError("Email already exists")
    db.refresh(db_user)
    return {"message": "User created", "userId": db_user.id}


@router.post("/users/login", response_model=LoginResponse)
def login(login_data: LoginRequest, db: Session = Depends(get_db)):
    db_user = db.execute(
        select(User).where(User.email == login_data.email.lower())
    ).scalar_one_or_none()
    if db_user is None:
        raise NotFoundError("User not found")
    if not auth.verify_password(login_data.password, db_user.password_hash):
        raise AuthenticationError("Incorrect password")

    token = auth.create_access_token({"sub": db_user.email, "role": db_user.role})
    return {
        "access_token": token,
        "token_type": "bearer",
        "id": db_user.id,
        "role": db_user.role,
        "firstName": db_user.first_name,
        "email": db_user.email,
        "phone": db_user.phone,
    }


@router.get("/drivers", response_model=List[DriverOut])
def list_drivers(db: Session = Depends(get_db)):
    return db.execute(
        select(User).where(User.role == UserRole.driver.value).order_by(User.last_name, User.first_name)
    ).scalars().all()
