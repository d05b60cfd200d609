"""Request bodies. Clients send camelCase; snake_case names are accepted too."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import PaymentStatus, ProductType


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PrintArea(ApiModel):
    id: str
    name: str
    price: float = Field(..., ge=0)
    selected: bool = False


class Turnaround(ApiModel):
    label: str
    price: float = Field(0.0, ge=0)


class AreaInstruction(ApiModel):
    area_id: str
    instructions: str = ""


class TextElement(ApiModel):
    id: Optional[str] = None
    text: str
    color: Optional[str] = None
    font_size: Optional[float] = None
    area: Optional[str] = None


class ImageElement(ApiModel):
    id: Optional[str] = None
    image_url: str
    area: Optional[str] = None
    width: Optional[float] = None
    height: Optional[float] = None
    file_name: Optional[str] = None


class DesignOrderIn(ApiModel):
    shirt_color: str
    size: str
    print_type: Optional[str] = None
    quantity: int = Field(..., ge=1)
    print_areas: List[PrintArea]
    turnaround_time: Turnaround
    design_proof: Optional[str] = None
    proof_contact_method: Optional[str] = None
    contact_details: Optional[str] = None
    area_instructions: List[AreaInstruction] = Field(default_factory=list)
    text_elements: List[TextElement] = Field(default_factory=list)
    image_elements: List[ImageElement] = Field(default_factory=list)


class CustomerDetails(ApiModel):
    first_name: str
    last_name: str
    email: EmailStr
    phone: str
    address: str
    city: str
    state: str
    zip_code: str
    country: str = "US"


class CheckoutIn(ApiModel):
    product_type: ProductType = ProductType.TSHIRT
    product_name: str = "Custom T-Shirt"
    shirt_color: Optional[str] = None
    shirt_size: Optional[str] = None
    print_type: Optional[str] = None
    quantity: int = Field(..., ge=1)
    print_areas: List[PrintArea]
    turnaround_time: Turnaround
    design_proof_required: bool = False
    proof_contact_details: Optional[str] = None
    area_instructions: List[AreaInstruction] = Field(default_factory=list)
    text_elements: List[TextElement] = Field(default_factory=list)
    image_elements: List[ImageElement] = Field(default_factory=list)
    color_copies_data: Optional[dict] = None
    customer_details: CustomerDetails


class PaymentIn(ApiModel):
    payment_id: Optional[str] = None
    status: PaymentStatus
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None


class StatusIn(ApiModel):
    status: str


class AdminLogin(ApiModel):
    username: str
    password: str


class CustomerInfo(ApiModel):
    name: str
    email: EmailStr
    phone: str
    company: Optional[str] = None
    address: Optional[str] = None


class QuoteProductIn(ApiModel):
    product_id: Optional[str] = None
    product_name: str
    product_category: Optional[str] = None
    quantity: int = Field(1, ge=1)
    size: Optional[str] = None
    custom_size: Optional[str] = None
    color: Optional[str] = None
    print_type: Optional[str] = None
    custom_print_type: Optional[str] = None
    print_areas: List[PrintArea] = Field(default_factory=list)
    text: Optional[str] = None
    turnaround_time: Optional[Turnaround] = None
    design_proof: Optional[str] = None
    proof_contact_method: Optional[str] = None
    contact_details: Optional[str] = None
    notes: Optional[str] = None


class QuoteAttachmentIn(ApiModel):
    file_name: str
    file_type: str
    file_size: int = Field(..., ge=0)
    file_url: Optional[str] = None
    attachment_type: str = "reference"
    description: Optional[str] = None
    is_primary: bool = False


class QuoteIn(ApiModel):
    customer_info: CustomerInfo
    quote_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    products: List[QuoteProductIn] = Field(default_factory=list)
    attachments: List[QuoteAttachmentIn] = Field(default_factory=list)


class QuoteUpdate(BaseModel):
    """Typed view of the updatable quote columns; keys are column names."""

    quote_status: Optional[str] = None
    quote_notes: Optional[str] = None
    internal_notes: Optional[str] = None
    quote_expiry_date: Optional[datetime] = None
    quote_sent_at: Optional[datetime] = None
    quote_accepted_at: Optional[datetime] = None
    quote_rejected_at: Optional[datetime] = None
    quote_follow_up_date: Optional[datetime] = None
    converted_to_order_id: Optional[str] = None
    conversion_date: Optional[datetime] = None

    @field_validator("quote_status")
    @classmethod
    def status_is_required(cls, v):
        if v is None:
            raise ValueError("quote_status cannot be cleared")
        return v
