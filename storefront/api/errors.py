# storefront/api/errors.py
from typing import TypeVar

from fastapi import HTTPException

from storefront.domain.errors import ServiceError
from storefront.domain.result import Err, Result

T = TypeVar("T")


def unwrap(result: Result[T, ServiceError]) -> T:
    """Ok -> wartosc, Err -> HTTPException ze statusem z rodzaju bledu."""
    if isinstance(result, Err):
        raise HTTPException(status_code=result.error.status_code, detail=result.error.to_dict())
    return result.value
