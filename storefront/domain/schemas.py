# storefront/domain/schemas.py
from pydantic import BaseModel, Field, ConfigDict
from typing import List, Literal, Optional
from decimal import Decimal
from datetime import datetime


class UserCreate(BaseModel):
    """Schema dla tworzenia użytkownika."""

    id: int = Field(..., gt=0, description="ID użytkownika (musi być > 0)")
    name: str = Field(..., min_length=1, max_length=100, description="Imię użytkownika")
    email: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=32)


class UserRead(BaseModel):
    """Schema dla użytkownika (response)."""

    id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AddressIn(BaseModel):
    full_name: str = Field(..., min_length=1)
    line1: str = Field(..., min_length=1)
    city: str = Field(..., min_length=1)
    state: str = Field(..., min_length=1)
    pincode: str = Field(..., min_length=1)
    country: str = "India"
    phone: str = ""


class AddressOut(AddressIn):
    id: int
    user_id: int

    model_config = ConfigDict(from_attributes=True)


class ProductCreate(BaseModel):
    """Schema dla tworzenia produktu (admin)."""

    name: str = Field(..., min_length=1, max_length=200)
    sku: Optional[str] = None
    price: Decimal = Field(..., ge=0, description="Cena jednostkowa")
    stock_quantity: int = Field(0, ge=0, description="Stan magazynowy")
    is_active: bool = True


class InventoryStatusOut(BaseModel):
    product_id: int
    total: int
    locked: int
    available: int


class ProductOut(BaseModel):
    id: int
    name: str
    sku: Optional[str] = None
    price: Decimal
    stock_quantity: int
    is_active: bool
    inventory: Optional[InventoryStatusOut] = None

    model_config = ConfigDict(from_attributes=True)


class ItemIn(BaseModel):
    """Schema dla dodawania produktu do koszyka / zamówienia."""

    product_id: int = Field(..., gt=0, description="ID produktu (musi być > 0)")
    quantity: int = Field(..., gt=0, description="Ilość produktu (musi być > 0)")


class CartItemOut(BaseModel):
    product_id: int
    quantity: int
    price: Decimal


class CartOut(BaseModel):
    """Schema dla koszyka (response)."""

    user_id: int
    items: List[CartItemOut]
    total: Decimal


class InlineAddressIn(BaseModel):
    """Adres podany bezpośrednio przy checkout zamiast ID."""

    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    country: Optional[str] = None


class CheckoutIn(BaseModel):
    """Schema dla checkout."""

    shipping_address_id: Optional[int] = None
    billing_address_id: Optional[int] = None
    shipping_address: Optional[InlineAddressIn] = None
    # puste / brak -> produkty z koszyka użytkownika
    items: Optional[List[ItemIn]] = None
    create_intent: bool = False


class OrderItemOut(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderOut(BaseModel):
    """Schema dla zamówienia (response)."""

    id: int
    order_number: str
    user_id: int
    status: str
    payment_status: str
    items: List[OrderItemOut]
    subtotal: Decimal
    tax_amount: Decimal
    shipping_fee: Decimal
    total_amount: Decimal
    shipping_address_id: int
    billing_address_id: int
    cancel_reason: Optional[str] = None
    tracking_number: Optional[str] = None
    created_at: datetime
    cancelled_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    restocked_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentIntentOut(BaseModel):
    payment_id: int
    gateway_order_id: str
    amount: int = Field(..., description="Kwota w groszach / paise")
    currency: str
    key_id: Optional[str] = None


class CheckoutOut(BaseModel):
    order: OrderOut
    next_step: str = "payment"
    payment_intent: Optional[PaymentIntentOut] = None


class CancelIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class ReturnIn(BaseModel):
    reason: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = Field(None, max_length=2000)


class ReturnOut(BaseModel):
    id: int
    order_id: int
    user_id: int
    reason: Optional[str] = None
    description: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class FulfillmentIn(BaseModel):
    status: Literal["SHIPPED", "DELIVERED"]
    tracking_number: Optional[str] = None


class PaymentCreateIn(BaseModel):
    order_id: int = Field(..., gt=0)


class PaymentVerifyIn(BaseModel):
    order_id: int = Field(..., gt=0)
    gateway_payment_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)


class PaymentVerifyOut(BaseModel):
    payment_id: int
    status: str
    # potwierdzenie klienta jest tylko wstepne, prawda przychodzi z webhooka
    provisional: bool = True


class PaymentStatusOut(BaseModel):
    payment_id: int
    order_id: int
    status: str
    amount: Decimal
    currency: str
    gateway_order_id: str
    confirmed: bool


class RefundIn(BaseModel):
    amount: Decimal = Field(..., gt=0)
    reason: Optional[str] = None


class RefundOut(BaseModel):
    payment_id: int
    refund_id: str
    amount: int
    status: str


class WebhookAck(BaseModel):
    received: bool = True
    outcome: str


class SweepOut(BaseModel):
    removed: int


class RestockOut(BaseModel):
    order_id: int
    restocked_units: int
