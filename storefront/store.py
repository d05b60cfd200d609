"""Store gateway over the two order tables and the quote tables.

Every operation is a single query or a single-row write in its own session.
Nothing spans both order tables in one transaction.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from .db import session_scope
from .errors import NotFoundError, UpstreamDatastoreError
from .logs import log_event
from .models import (
    ORDER_TABLES,
    OrderBase,
    ProductType,
    Quote,
    QuoteAttachment,
    QuoteProduct,
    utcnow,
)

PAYMENT_FIELDS = {"payment_id", "payment_status", "payment_method", "status"}

Guard = Callable[[object], None]


@contextmanager
def datastore_guard(action: str, message: str):
    try:
        yield
    except SQLAlchemyError as exc:
        err = UpstreamDatastoreError(message, detail=str(exc))
        log_event("error", "datastore.error", action=action, reference=err.reference, detail=err.detail)
        raise err from exc


class OrderStore:
    def __init__(self, session_factory=session_scope):
        self._session_factory = session_factory

    def create_order(self, product_type: ProductType, fields: Dict) -> OrderBase:
        model = ORDER_TABLES[ProductType(product_type)]
        with datastore_guard("order.create", "Error saving to database"):
            with self._session_factory() as session:
                order = model(**fields)
                session.add(order)
                session.commit()
                session.refresh(order)
        return order

    def locate(self, order_id: str) -> Optional[ProductType]:
        """Which table holds ``order_id``, checked explicitly per table."""
        with datastore_guard("order.locate", "Error fetching order"):
            with self._session_factory() as session:
                for product_type, model in ORDER_TABLES.items():
                    if session.get(model, order_id) is not None:
                        return product_type
        return None

    def _resolve(self, order_id: str, product_type: Optional[ProductType]) -> ProductType:
        resolved = ProductType(product_type) if product_type else self.locate(order_id)
        if resolved is None:
            raise NotFoundError("Order not found")
        return resolved

    def get_order(self, order_id: str, product_type: Optional[ProductType] = None) -> OrderBase:
        model = ORDER_TABLES[self._resolve(order_id, product_type)]
        with datastore_guard("order.get", "Error fetching order"):
            with self._session_factory() as session:
                order = session.get(model, order_id)
        if order is None:
            raise NotFoundError("Order not found")
        return order

    def list_orders(
        self,
        status: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
        product_type: ProductType = ProductType.TSHIRT,
    ) -> List[OrderBase]:
        model = ORDER_TABLES[ProductType(product_type)]
        stmt = select(model)
        if status:
            stmt = stmt.where(model.status == status)
        stmt = stmt.order_by(model.created_at.desc()).offset(offset).limit(limit)
        with datastore_guard("order.list", "Error fetching orders"):
            with self._session_factory() as session:
                return list(session.exec(stmt))

    def list_all_orders(self, status: Optional[str] = None) -> List[OrderBase]:
        merged: List[OrderBase] = []
        for product_type, model in ORDER_TABLES.items():
            stmt = select(model)
            if status:
                stmt = stmt.where(model.status == status)
            with datastore_guard("order.list_all", "Error fetching orders"):
                with self._session_factory() as session:
                    merged.extend(session.exec(stmt))
        merged.sort(key=lambda o: o.created_at, reverse=True)
        return merged

    def _mutate(
        self,
        action: str,
        order_id: str,
        product_type: Optional[ProductType],
        fields: Dict,
        guard: Optional[Guard] = None,
    ) -> OrderBase:
        model = ORDER_TABLES[self._resolve(order_id, product_type)]
        with datastore_guard(action, "Error updating order"):
            with self._session_factory() as session:
                order = session.get(model, order_id)
                if order is None:
                    raise NotFoundError("Order not found")
                if guard is not None:
                    guard(order)
                for key, value in fields.items():
                    setattr(order, key, value)
                order.updated_at = utcnow()
                session.add(order)
                session.commit()
                session.refresh(order)
        return order

    def update_order_status(self, order_id: str, status: str, product_type: Optional[ProductType] = None) -> OrderBase:
        return self._mutate("order.status", order_id, product_type, {"status": status})

    def update_order_payment(
        self,
        order_id: str,
        fields: Dict,
        product_type: Optional[ProductType] = None,
        guard: Optional[Guard] = None,
    ) -> OrderBase:
        unknown = set(fields) - PAYMENT_FIELDS
        if unknown:
            raise ValueError(f"not payment fields: {sorted(unknown)}")
        return self._mutate("order.payment", order_id, product_type, fields, guard=guard)

    def delete_order(self, order_id: str, product_type: Optional[ProductType] = None) -> ProductType:
        resolved = self._resolve(order_id, product_type)
        model = ORDER_TABLES[resolved]
        with datastore_guard("order.delete", "Error deleting order"):
            with self._session_factory() as session:
                order = session.get(model, order_id)
                if order is None:
                    raise NotFoundError("Order not found")
                session.delete(order)
                session.commit()
        return resolved


def _quote_view(session, quote: Quote) -> Dict:
    products = session.exec(
        select(QuoteProduct).where(QuoteProduct.quote_id == quote.id).order_by(QuoteProduct.created_at)
    )
    attachments = session.exec(
        select(QuoteAttachment).where(QuoteAttachment.quote_id == quote.id).order_by(QuoteAttachment.created_at)
    )
    view = quote.model_dump()
    view["quote_products"] = [p.model_dump() for p in products]
    view["quote_attachments"] = [a.model_dump() for a in attachments]
    return view


class QuoteStore:
    def __init__(self, session_factory=session_scope):
        self._session_factory = session_factory

    def create_quote(self, fields: Dict, products: Iterable[Dict], attachments: Iterable[Dict] = ()) -> Dict:
        with datastore_guard("quote.create", "Failed to create quote"):
            with self._session_factory() as session:
                quote = Quote(**fields)
                session.add(quote)
                session.flush()
                total = 0.0
                for product in products:
                    row = QuoteProduct(quote_id=quote.id, **product)
                    total += row.total_price
                    session.add(row)
                for attachment in attachments:
                    session.add(QuoteAttachment(quote_id=quote.id, **attachment))
                quote.total_amount = round(total, 2)
                session.commit()
                session.refresh(quote)
                return _quote_view(session, quote)

    def get_quote(self, quote_id: str) -> Dict:
        with datastore_guard("quote.get", "Failed to fetch quote"):
            with self._session_factory() as session:
                quote = session.get(Quote, quote_id)
                if quote is None:
                    raise NotFoundError("Quote not found")
                return _quote_view(session, quote)

    def list_quotes(self, status: Optional[str] = None, customer_email: Optional[str] = None) -> List[Dict]:
        stmt = select(Quote)
        if status:
            stmt = stmt.where(Quote.quote_status == status)
        if customer_email:
            stmt = stmt.where(Quote.customer_email == customer_email)
        stmt = stmt.order_by(Quote.created_at.desc())
        with datastore_guard("quote.list", "Failed to fetch quotes"):
            with self._session_factory() as session:
                return [_quote_view(session, q) for q in list(session.exec(stmt))]

    def update_quote(self, quote_id: str, fields: Dict) -> Dict:
        with datastore_guard("quote.update", "Failed to update quote"):
            with self._session_factory() as session:
                quote = session.get(Quote, quote_id)
                if quote is None:
                    raise NotFoundError("Quote not found")
                for key, value in fields.items():
                    setattr(quote, key, value)
                quote.updated_at = utcnow()
                session.add(quote)
                session.commit()
                session.refresh(quote)
                return _quote_view(session, quote)

    def delete_quote(self, quote_id: str, guard: Optional[Guard] = None) -> None:
        with datastore_guard("quote.delete", "Failed to delete quote"):
            with self._session_factory() as session:
                quote = session.get(Quote, quote_id)
                if quote is None:
                    raise NotFoundError("Quote not found")
                if guard is not None:
                    guard(quote)
                for child in (QuoteProduct, QuoteAttachment):
                    for row in list(session.exec(select(child).where(child.quote_id == quote_id))):
                        session.delete(row)
                session.delete(quote)
                session.commit()
