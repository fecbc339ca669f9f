from typing import List

from sqlalchemy.orm import Session
from storefront.data.models.address import AddressModel
from storefront.data.models.user import UserModel
from storefront.domain.errors import ErrorKind, ServiceError, fail
from storefront.domain.result import Ok, Result
from storefront.repos.address_repo import AddressRepo
from storefront.repos.user_repo import UserRepo
from storefront.domain.schemas import AddressIn, UserCreate, UserRead


class UserService:
    def __init__(self, db: Session):
        self.repo = UserRepo(db)
        self.addresses = AddressRepo(db)

    def create_user(self, payload: UserCreate) -> UserRead:
        existing = self.repo.get_user(payload.id)
        if existing:
            return UserRead.model_validate(existing)

        user = UserModel(id=payload.id, name=payload.name, email=payload.email, phone=payload.phone)
        created = self.repo.create_user(user)
        return UserRead.model_validate(created)

    def get_user(self, user_id: int) -> Result[UserRead, ServiceError]:
        user = self.repo.get_user(user_id)
        if not user:
            return fail(ErrorKind.NOT_FOUND, "User not found", user_id=user_id)
        return Ok(UserRead.model_validate(user))

    def add_address(self, user_id: int, payload: AddressIn) -> Result[AddressModel, ServiceError]:
        if not self.repo.get_user(user_id):
            return fail(ErrorKind.NOT_FOUND, "User not found", user_id=user_id)

        address = self.addresses.add(AddressModel(user_id=user_id, **payload.model_dump()))
        self.addresses.commit()
        return Ok(address)

    def list_addresses(self, user_id: int) -> List[AddressModel]:
        return self.addresses.list_for_user(user_id)
