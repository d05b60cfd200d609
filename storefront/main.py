from __future__ import annotations

from typing import Optional

from fastapi import BackgroundTasks, Body, Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from .auth import check_credentials, require_admin
from .config import get_settings
from .db import init_db, ping
from .emails import get_order_received_html, get_payment_confirmed_html, send_email_async
from .errors import (
    AuthenticationError,
    ClientInputError,
    RateLimitError,
    SecurityViolation,
    StorefrontError,
)
from .lifecycle import OrderLifecycle, QuoteLifecycle
from .logs import log_event
from .models import OrderBase, PaymentStatus, ProductType, product_type_of
from .pricing import COLOR_COPY_OPTIONS, PRODUCT_CONFIGS, get_product_config
from .ratelimit import InMemoryRateLimiter, client_identifier
from .schemas import AdminLogin, CheckoutIn, DesignOrderIn, PaymentIn, QuoteIn, StatusIn
from .security import (
    FILE_UPLOAD_BLOCKED,
    SUSPICIOUS_FILE,
    UPLOAD_IMAGE_TYPES,
    SecurityEventLog,
    UploadCandidate,
    detect_executable,
    validate_file,
)
from .store import OrderStore, QuoteStore, datastore_guard

settings = get_settings()

app = FastAPI(title=settings.site_name)

# Sessions (admin login)
app.add_middleware(SessionMiddleware, secret_key=settings.session_secret, same_site="lax", https_only=False)

app.state.orders = OrderLifecycle(OrderStore(), settings)
app.state.security_log = SecurityEventLog()
app.state.quotes = QuoteLifecycle(QuoteStore(), settings, app.state.security_log)
app.state.rate_limiter = InMemoryRateLimiter()


def _order_out(order: OrderBase) -> dict:
    data = order.model_dump()
    data["product_type"] = product_type_of(order).value
    return data


@app.exception_handler(StorefrontError)
async def storefront_error_handler(request: Request, exc: StorefrontError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    detail = None
    if errors:
        first = errors[0]
        detail = f"{'.'.join(str(p) for p in first.get('loc', ()))}: {first.get('msg')}"
    return JSONResponse(status_code=400, content=ClientInputError("Invalid request", error=detail).to_payload())


@app.on_event("startup")
def on_startup():
    init_db()


@app.get("/health")
def health():
    with datastore_guard("health", "Database not reachable"):
        ping()
    return {"success": True, "database": "connected"}


# ---------------- Catalogue ----------------

@app.get("/products")
def list_products():
    return {"success": True, "products": PRODUCT_CONFIGS, "colorCopyOptions": COLOR_COPY_OPTIONS}


@app.get("/products/{product_key}")
def get_product(product_key: str):
    return {"success": True, "product": get_product_config(product_key)}


# ---------------- Orders ----------------

@app.post("/orders/design")
def create_design_order(design: DesignOrderIn, request: Request):
    order, pricing = request.app.state.orders.place_design_order(design)
    return {
        "success": True,
        "message": "Order saved successfully",
        "orderId": order.id,
        "basePrice": pricing.base_price,
        "totalPrice": pricing.total_price,
    }


@app.post("/checkout")
def checkout(data: CheckoutIn, request: Request, background_tasks: BackgroundTasks):
    order, pricing = request.app.state.orders.checkout(data)
    if settings.mail_enabled and order.customer_email:
        background_tasks.add_task(
            send_email_async,
            f"{settings.site_name}: order received",
            order.customer_email,
            get_order_received_html(order.customer_name, order.id, pricing.total_price, settings.site_name),
        )
    return {
        "success": True,
        "message": "Order created successfully",
        "orderId": order.id,
        "productType": data.product_type.value,
        "totalPrice": pricing.total_price,
    }


@app.get("/orders")
def list_orders(
    request: Request,
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    product_type: ProductType = ProductType.TSHIRT,
):
    orders = request.app.state.orders.orders.list_orders(status, limit, offset, product_type)
    return {
        "success": True,
        "orders": [_order_out(o) for o in orders],
        "pagination": {"limit": limit, "offset": offset, "hasMore": len(orders) == limit},
    }


@app.get("/orders/{order_id}")
def get_order(order_id: str, request: Request, product_type: Optional[ProductType] = None):
    order = request.app.state.orders.orders.get_order(order_id, product_type)
    return {"success": True, "order": _order_out(order)}


@app.post("/orders/{order_id}/payment")
def confirm_payment(order_id: str, payment: PaymentIn, request: Request, background_tasks: BackgroundTasks):
    order = request.app.state.orders.confirm_payment(
        order_id,
        status=payment.status,
        payment_id=payment.payment_id,
        payment_method=payment.payment_method,
        transaction_id=payment.transaction_id,
    )
    if settings.mail_enabled and order.customer_email and payment.status == PaymentStatus.PAID:
        background_tasks.add_task(
            send_email_async,
            f"{settings.site_name}: payment received",
            order.customer_email,
            get_payment_confirmed_html(order.customer_name or "there", order.id, order.payment_id or ""),
        )
    return {"success": True, "order": _order_out(order)}


@app.patch("/orders/{order_id}", dependencies=[Depends(require_admin)])
def update_order_status(order_id: str, body: StatusIn, request: Request):
    order = request.app.state.orders.set_status(order_id, body.status)
    return {"success": True, "order": _order_out(order)}


@app.delete("/orders/{order_id}", dependencies=[Depends(require_admin)])
def delete_order(order_id: str, request: Request, product_type: Optional[ProductType] = None):
    removed_from = request.app.state.orders.delete(order_id, product_type)
    return {"success": True, "message": "Order deleted", "productType": removed_from.value}


# ---------------- Quotes ----------------

@app.post("/quotes")
def submit_quote(data: QuoteIn, request: Request):
    quote = request.app.state.quotes.submit(data, client_identifier(request), request.headers.get("user-agent"))
    return {
        "success": True,
        "quote": quote,
        "message": "Quote submitted successfully! We will review your request and send you a detailed quote within 24 hours.",
    }


@app.get("/quotes")
def list_quotes(request: Request, status: Optional[str] = None, customer_email: Optional[str] = Query(None, alias="customerEmail")):
    quotes = request.app.state.quotes.quotes.list_quotes(status, customer_email)
    return {"success": True, "quotes": quotes}


@app.get("/quotes/{quote_id}")
def get_quote(quote_id: str, request: Request):
    return {"success": True, "quote": request.app.state.quotes.quotes.get_quote(quote_id)}


@app.put("/quotes/{quote_id}")
def update_quote(quote_id: str, request: Request, body: dict = Body(...)):
    return {"success": True, "quote": request.app.state.quotes.update(quote_id, body)}


@app.delete("/quotes/{quote_id}")
def delete_quote(quote_id: str, request: Request):
    request.app.state.quotes.delete(quote_id)
    return {"success": True}


# ---------------- Uploads ----------------

@app.post("/uploads/secure")
async def upload_secure(request: Request, file: Optional[UploadFile] = File(None)):
    ip = client_identifier(request)
    user_agent = request.headers.get("user-agent")
    security_log: SecurityEventLog = request.app.state.security_log

    # Counted before the file is looked at, so an empty request still uses an attempt.
    decision = request.app.state.rate_limiter.check_limit(ip, settings.upload_rate_limit, settings.upload_rate_window_ms)
    if not decision.allowed:
        security_log.record(
            FILE_UPLOAD_BLOCKED,
            file_name="unknown",
            file_size=0,
            file_type="unknown",
            ip=ip,
            user_agent=user_agent,
            reason="Rate limit exceeded",
        )
        raise RateLimitError("Upload rate limit exceeded. Please try again later.")

    if file is None or not file.filename:
        raise ClientInputError("No file provided")

    # Never buffer more than one byte past the limit.
    content = await file.read(settings.max_upload_bytes + 1)
    candidate = UploadCandidate(
        file_name=file.filename,
        size=file.size if file.size is not None else len(content),
        content_type=file.content_type or "",
        content=content,
    )

    result = validate_file(candidate, max_size=settings.max_upload_bytes, allowed_types=UPLOAD_IMAGE_TYPES)
    if not result.is_valid:
        security_log.record(
            result.category,
            file_name=candidate.file_name,
            file_size=candidate.size,
            file_type=candidate.content_type,
            ip=ip,
            user_agent=user_agent,
            reason=result.error or "Unknown validation error",
        )
        raise SecurityViolation(result.error)

    kind = detect_executable(content)
    if kind:
        security_log.record(
            SUSPICIOUS_FILE,
            file_name=candidate.file_name,
            file_size=candidate.size,
            file_type=candidate.content_type,
            ip=ip,
            user_agent=user_agent,
            reason=f"Executable file signature detected ({kind})",
        )
        raise SecurityViolation("File appears to be an executable and cannot be uploaded")

    log_event("info", "upload.accepted", file_name=result.sanitized_file_name, file_size=candidate.size, ip=ip)
    return {
        "success": True,
        "message": "File uploaded securely",
        "sanitizedFileName": result.sanitized_file_name,
        "fileSize": candidate.size,
        "fileType": candidate.content_type,
        "remainingAttempts": decision.remaining_attempts,
    }


# ---------------- Admin ----------------

@app.post("/admin/login")
def admin_login(body: AdminLogin, request: Request):
    if not check_credentials(body.username, body.password):
        log_event("warning", "admin.login_failed", username=body.username)
        raise AuthenticationError("Login failed")
    request.session["is_admin"] = True
    return {"success": True}


@app.post("/admin/logout")
def admin_logout(request: Request):
    request.session.clear()
    return {"success": True}


@app.get("/admin/orders", dependencies=[Depends(require_admin)])
def admin_orders(request: Request, status: Optional[str] = None):
    orders = request.app.state.orders.orders.list_all_orders(status)
    return {"success": True, "orders": [_order_out(o) for o in orders]}


@app.get("/admin/security-events", dependencies=[Depends(require_admin)])
def admin_security_events(request: Request):
    return {"success": True, "events": request.app.state.security_log.entries()}
