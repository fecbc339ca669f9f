# storefront/domain/result.py
"""
Wynik operacji serwisu zamiast wyjatkow dla bledow biznesowych.

    result = ledger.reserve(order_id, items)
    if isinstance(result, Err):
        ...
    reservations = result.value
"""
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err(Generic[E]):
    error: E

    @property
    def ok(self) -> bool:
        return False


Result = Union[Ok[T], Err[E]]
