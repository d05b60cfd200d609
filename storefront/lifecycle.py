"""Which fields change on which event: design submission, checkout, payment,
admin status changes, quote edits and deletes."""

from __future__ import annotations

from datetime import timedelta
from typing import Dict, Optional, Tuple

from pydantic import ValidationError

from .config import Settings
from .errors import ClientInputError, SecurityViolation
from .logs import log_event
from .models import OrderBase, OrderStatus, PaymentStatus, ProductType, QuoteStatus, utcnow
from .pricing import Pricing, calculate_pricing
from .schemas import CheckoutIn, DesignOrderIn, QuoteIn, QuoteUpdate
from .security import SecurityEventLog, UploadCandidate, validate_file
from .store import OrderStore, QuoteStore

PROOF_REQUESTED = "Yes, send design proof before printing"

CLOSED_STATUSES = {OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value}

ALLOWED_TRANSITIONS = {
    OrderStatus.PENDING.value: {OrderStatus.PROCESSING.value, OrderStatus.CANCELLED.value},
    OrderStatus.PROCESSING.value: {OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value},
    OrderStatus.COMPLETED.value: set(),
    OrderStatus.CANCELLED.value: set(),
}

QUOTE_UPDATABLE_FIELDS = (
    "quote_status",
    "quote_notes",
    "internal_notes",
    "quote_expiry_date",
    "quote_sent_at",
    "quote_accepted_at",
    "quote_rejected_at",
    "quote_follow_up_date",
    "converted_to_order_id",
    "conversion_date",
)


def _dump_all(items) -> list:
    return [item.model_dump() for item in items]


class OrderLifecycle:
    def __init__(self, orders: OrderStore, settings: Settings):
        self.orders = orders
        self.settings = settings

    def place_design_order(self, design: DesignOrderIn) -> Tuple[OrderBase, Pricing]:
        areas = _dump_all(design.print_areas)
        pricing = calculate_pricing(areas, design.quantity, design.turnaround_time.price)
        proof = design.design_proof == PROOF_REQUESTED
        order = self.orders.create_order(
            ProductType.TSHIRT,
            {
                "product_name": "Custom T-Shirt",
                "shirt_color": design.shirt_color,
                "shirt_size": design.size,
                "print_type": design.print_type,
                "quantity": design.quantity,
                "print_areas": areas,
                "text_elements": _dump_all(design.text_elements),
                "image_elements": _dump_all(design.image_elements),
                "area_instructions": _dump_all(design.area_instructions),
                "turnaround_time": design.turnaround_time.model_dump(),
                "base_price": pricing.base_price,
                "turnaround_price": pricing.turnaround_price,
                "total_price": pricing.total_price,
                "design_proof_required": proof,
                "proof_contact_method": design.proof_contact_method if proof else None,
                "proof_contact_details": design.contact_details if proof else None,
                "status": OrderStatus.PENDING.value,
                "payment_status": PaymentStatus.PENDING.value,
            },
        )
        log_event("info", "order.created", order_id=order.id, product_type="tshirt", total_price=pricing.total_price)
        return order, pricing

    def checkout(self, data: CheckoutIn) -> Tuple[OrderBase, Pricing]:
        areas = _dump_all(data.print_areas)
        pricing = calculate_pricing(areas, data.quantity, data.turnaround_time.price)
        c = data.customer_details
        fields = {
            "product_name": data.product_name,
            "shirt_color": data.shirt_color,
            "shirt_size": data.shirt_size,
            "print_type": data.print_type,
            "quantity": data.quantity,
            "print_areas": areas,
            "text_elements": _dump_all(data.text_elements),
            "image_elements": _dump_all(data.image_elements),
            "area_instructions": _dump_all(data.area_instructions),
            "turnaround_time": data.turnaround_time.model_dump(),
            "base_price": pricing.base_price,
            "turnaround_price": pricing.turnaround_price,
            "total_price": pricing.total_price,
            "design_proof_required": data.design_proof_required,
            "proof_contact_details": data.proof_contact_details,
            "customer_name": f"{c.first_name} {c.last_name}",
            "customer_email": c.email,
            "customer_phone": c.phone,
            "customer_address": f"{c.address}, {c.city}, {c.state} {c.zip_code}, {c.country}",
            "status": OrderStatus.PENDING.value,
            "payment_status": PaymentStatus.PENDING.value,
            "notes": f"Order placed via checkout system. Customer: {c.first_name} {c.last_name}",
        }
        if data.product_type == ProductType.COLOR_COPIES:
            fields["color_copies_data"] = data.color_copies_data or {}
        order = self.orders.create_order(data.product_type, fields)
        log_event(
            "info",
            "order.created",
            order_id=order.id,
            product_type=data.product_type.value,
            total_price=pricing.total_price,
        )
        return order, pricing

    def confirm_payment(
        self,
        order_id: str,
        *,
        status: PaymentStatus,
        payment_id: Optional[str] = None,
        payment_method: Optional[str] = None,
        transaction_id: Optional[str] = None,
    ) -> OrderBase:
        status = PaymentStatus(status)
        fields = {
            "payment_status": status.value,
            "status": OrderStatus.PROCESSING.value if status == PaymentStatus.PAID else OrderStatus.PENDING.value,
        }
        # Set once at confirmation; a later call without them keeps the old values.
        if payment_id:
            fields["payment_id"] = payment_id
        if payment_method:
            fields["payment_method"] = payment_method

        guard = None
        if self.settings.payment_update_policy == "reject_closed":
            def guard(order):
                if order.status in CLOSED_STATUSES:
                    raise ClientInputError(f"Payment cannot be changed on a {order.status} order")

        order = self.orders.update_order_payment(order_id, fields, guard=guard)
        log_event(
            "info",
            "order.payment",
            order_id=order_id,
            payment_id=payment_id,
            payment_status=status.value,
            payment_method=payment_method,
            transaction_id=transaction_id,
        )
        return order

    def set_status(self, order_id: str, status: str) -> OrderBase:
        if not isinstance(status, str) or not status.strip():
            raise ClientInputError("Status is required")
        if self.settings.order_status_policy == "strict":
            allowed = {s.value for s in OrderStatus}
            if status not in allowed:
                raise ClientInputError(f"Unknown order status: {status}")
            current = self.orders.get_order(order_id)
            if status != current.status and status not in ALLOWED_TRANSITIONS.get(current.status, set()):
                raise ClientInputError(f"Cannot move order from {current.status} to {status}")
        order = self.orders.update_order_status(order_id, status)
        log_event("info", "order.status", order_id=order_id, status=status)
        return order

    def delete(self, order_id: str, product_type: Optional[ProductType] = None) -> ProductType:
        removed_from = self.orders.delete_order(order_id, product_type)
        log_event("info", "order.deleted", order_id=order_id, product_type=removed_from.value)
        return removed_from


class QuoteLifecycle:
    def __init__(self, quotes: QuoteStore, settings: Settings, security_log: Optional[SecurityEventLog] = None):
        self.quotes = quotes
        self.settings = settings
        self.security_log = security_log if security_log is not None else SecurityEventLog()

    def submit(self, data: QuoteIn, ip: Optional[str] = None, user_agent: Optional[str] = None) -> Dict:
        c = data.customer_info
        if not (c.name and c.email and c.phone):
            raise ClientInputError("Missing required customer information")
        if not data.products:
            raise ClientInputError("No products selected")

        attachments = []
        for a in data.attachments:
            candidate = UploadCandidate(file_name=a.file_name, size=a.file_size, content_type=a.file_type)
            result = validate_file(candidate)
            if not result.is_valid:
                self.security_log.record(
                    result.category,
                    file_name=a.file_name,
                    file_size=a.file_size,
                    file_type=a.file_type,
                    reason=result.error,
                    ip=ip,
                    user_agent=user_agent,
                )
                raise SecurityViolation(f"File security validation failed: {result.error}")
            row = a.model_dump()
            row["file_name"] = result.sanitized_file_name
            attachments.append(row)

        products = []
        for p in data.products:
            products.append(
                {
                    "product_id": p.product_id,
                    "product_name": p.product_name,
                    "product_category": p.product_category,
                    "quantity": p.quantity,
                    "size": p.size,
                    "custom_size": p.custom_size,
                    "color": p.color,
                    "print_type": p.print_type,
                    "custom_print_type": p.custom_print_type,
                    "print_areas": _dump_all(p.print_areas),
                    "text_elements": [{"text": p.text, "area": "general"}] if p.text else [],
                    "turnaround_time": p.turnaround_time.model_dump() if p.turnaround_time else None,
                    "design_proof_required": p.design_proof == PROOF_REQUESTED,
                    "proof_contact_method": p.proof_contact_method,
                    "proof_contact_details": p.contact_details,
                    "notes": p.notes,
                }
            )

        quote = self.quotes.create_quote(
            {
                "customer_name": c.name,
                "customer_email": c.email,
                "customer_phone": c.phone,
                "customer_address": c.address,
                "customer_company": c.company,
                "quote_notes": data.quote_notes,
                "internal_notes": data.internal_notes,
                "quote_status": QuoteStatus.PENDING.value,
                "quote_expiry_date": utcnow() + timedelta(days=self.settings.quote_expiry_days),
            },
            products,
            attachments,
        )
        log_event("info", "quote.created", quote_id=quote["id"], products=len(products))
        return quote

    def update(self, quote_id: str, body: Dict) -> Dict:
        if not isinstance(body, dict):
            raise ClientInputError("Request body must be a JSON object")
        # Anything outside the allow-list is dropped without complaint. An explicit null clears the field.
        candidate = {k: body[k] for k in QUOTE_UPDATABLE_FIELDS if k in body}
        if not candidate:
            raise ClientInputError("No valid fields to update")
        try:
            fields = QuoteUpdate.model_validate(candidate).model_dump(exclude_unset=True)
        except ValidationError as exc:
            raise ClientInputError("Invalid quote fields", error=str(exc.errors()[0].get("msg"))) from exc
        quote = self.quotes.update_quote(quote_id, fields)
        log_event("info", "quote.updated", quote_id=quote_id, fields=sorted(fields))
        return quote

    def delete(self, quote_id: str) -> None:
        def guard(quote):
            if quote.quote_status == QuoteStatus.CONVERTED.value:
                raise ClientInputError("Cannot delete converted quotes")

        self.quotes.delete_quote(quote_id, guard=guard)
        log_event("info", "quote.deleted", quote_id=quote_id)
