from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, DateTime
from sqlmodel import SQLModel, Field


def utcnow() -> datetime:
    # Naive UTC in plain DateTime columns, matching what SQLite hands back.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class QuoteStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CONVERTED = "converted"


class ProductType(str, Enum):
    TSHIRT = "tshirt"
    COLOR_COPIES = "color_copies"


class OrderBase(SQLModel):
    # Columns are declared with sa_type so each table gets its own Column objects.
    # Timestamps are naive UTC stored as plain DateTime.
    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    product_name: str = Field(default="Custom T-Shirt", max_length=200)

    # Design content, fixed at creation
    shirt_color: Optional[str] = Field(default=None, max_length=64)
    shirt_size: Optional[str] = Field(default=None, max_length=64)
    print_type: Optional[str] = Field(default=None, max_length=128)
    quantity: int = Field(default=1)
    print_areas: List[dict] = Field(default_factory=list, sa_type=JSON)
    text_elements: List[dict] = Field(default_factory=list, sa_type=JSON)
    image_elements: List[dict] = Field(default_factory=list, sa_type=JSON)
    area_instructions: List[dict] = Field(default_factory=list, sa_type=JSON)
    turnaround_time: Optional[dict] = Field(default=None, sa_type=JSON)

    base_price: float = Field(default=0.0)
    turnaround_price: float = Field(default=0.0)
    total_price: float = Field(default=0.0)

    design_proof_required: bool = Field(default=False)
    proof_contact_method: Optional[str] = Field(default=None, max_length=64)
    proof_contact_details: Optional[str] = Field(default=None, max_length=500)

    customer_name: Optional[str] = Field(default=None, max_length=200)
    customer_email: Optional[str] = Field(default=None, max_length=320)
    customer_phone: Optional[str] = Field(default=None, max_length=64)
    customer_address: Optional[str] = Field(default=None, max_length=1000)
    notes: Optional[str] = Field(default=None, max_length=4000)

    # Free-form on purpose: the admin overwrite may store values outside OrderStatus.
    status: str = Field(default=OrderStatus.PENDING.value, max_length=32, index=True)
    payment_status: str = Field(default=PaymentStatus.PENDING.value, max_length=32)
    payment_id: Optional[str] = Field(default=None, max_length=200)
    payment_method: Optional[str] = Field(default=None, max_length=64)


class TShirtOrder(OrderBase, table=True):
    __tablename__ = "tshirt_orders"


class ColorCopiesOrder(OrderBase, table=True):
    __tablename__ = "color_copies_orders"

    color_copies_data: Optional[dict] = Field(default=None, sa_type=JSON)


ORDER_TABLES = {
    ProductType.TSHIRT: TShirtOrder,
    ProductType.COLOR_COPIES: ColorCopiesOrder,
}


def product_type_of(order: OrderBase) -> ProductType:
    for product_type, model in ORDER_TABLES.items():
        if isinstance(order, model):
            return product_type
    raise TypeError(f"not an order row: {type(order).__name__}")


class Quote(SQLModel, table=True):
    __tablename__ = "quotes"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime, index=True)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    customer_name: str = Field(max_length=200)
    customer_email: str = Field(max_length=320, index=True)
    customer_phone: str = Field(max_length=64)
    customer_address: Optional[str] = Field(default=None, max_length=1000)
    customer_company: Optional[str] = Field(default=None, max_length=200)

    quote_notes: Optional[str] = Field(default=None, max_length=4000)
    internal_notes: Optional[str] = Field(default=None, max_length=4000)
    quote_status: str = Field(default=QuoteStatus.PENDING.value, max_length=32, index=True)
    total_amount: float = Field(default=0.0)

    quote_expiry_date: Optional[datetime] = Field(default=None, sa_type=DateTime)
    quote_sent_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    quote_accepted_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    quote_rejected_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    quote_follow_up_date: Optional[datetime] = Field(default=None, sa_type=DateTime)
    converted_to_order_id: Optional[str] = Field(default=None, max_length=36)
    conversion_date: Optional[datetime] = Field(default=None, sa_type=DateTime)


class QuoteProduct(SQLModel, table=True):
    __tablename__ = "quote_products"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    quote_id: str = Field(foreign_key="quotes.id", index=True, max_length=36)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    product_id: Optional[str] = Field(default=None, max_length=64)
    product_name: str = Field(max_length=200)
    product_category: Optional[str] = Field(default=None, max_length=100)
    quantity: int = Field(default=1)
    size: Optional[str] = Field(default=None, max_length=64)
    custom_size: Optional[str] = Field(default=None, max_length=200)
    color: Optional[str] = Field(default=None, max_length=64)
    print_type: Optional[str] = Field(default=None, max_length=128)
    custom_print_type: Optional[str] = Field(default=None, max_length=200)
    print_areas: List[dict] = Field(default_factory=list, sa_type=JSON)
    text_elements: List[dict] = Field(default_factory=list, sa_type=JSON)
    turnaround_time: Optional[dict] = Field(default=None, sa_type=JSON)
    design_proof_required: bool = Field(default=False)
    proof_contact_method: Optional[str] = Field(default=None, max_length=64)
    proof_contact_details: Optional[str] = Field(default=None, max_length=500)
    unit_price: float = Field(default=0.0)
    total_price: float = Field(default=0.0)
    notes: Optional[str] = Field(default=None, max_length=4000)


class QuoteAttachment(SQLModel, table=True):
    __tablename__ = "quote_attachments"

    id: str = Field(default_factory=new_id, primary_key=True, max_length=36)
    quote_id: str = Field(foreign_key="quotes.id", index=True, max_length=36)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    file_name: str = Field(max_length=255)
    file_type: str = Field(max_length=128)
    file_size: int
    file_url: Optional[str] = Field(default=None, max_length=2000)
    attachment_type: str = Field(default="reference", max_length=32)
    description: Optional[str] = Field(default=None, max_length=1000)
    is_primary: bool = Field(default=False)
