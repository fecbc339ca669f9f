from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from storefront.api.errors import unwrap
from storefront.data.database import get_db
from storefront.services.user_service import UserService
from storefront.domain.schemas import AddressIn, AddressOut, UserCreate, UserRead

router = APIRouter(prefix="/users", tags=["users"])

@router.post("/", response_model=UserRead)
def create_user(payload: UserCreate, db: Session = Depends(get_db)):
    service = UserService(db)
    return service.create_user(payload)

@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: int, db: Session = Depends(get_db)):
    service = UserService(db)
    return unwrap(service.get_user(user_id))

@router.post("/{user_id}/addresses", response_model=AddressOut, status_code=201)
def add_address(user_id: int, payload: AddressIn, db: Session = Depends(get_db)):
    service = UserService(db)
    return unwrap(service.add_address(user_id, payload))

@router.get("/{user_id}/addresses", response_model=List[AddressOut])
def list_addresses(user_id: int, db: Session = Depends(get_db)):
    service = UserService(db)
    return service.list_addresses(user_id)
