"""
Bookmart - Application Entry Point
====================================
FastAPI app initialization, middleware, exception handlers and router registration.
"""

import logging
import re
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from apscheduler.schedulers.background import BackgroundScheduler

from config import settings
from config.database import SessionLocal, Base, engine
from common.exceptions import BookmartError
from common.helpers import safe_int
from common.security import decode_token, bearer_token

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("bookmart.app")
scheduler_logger = logging.getLogger("bookmart.scheduler")
access_logger = logging.getLogger("bookmart.access")

# ==========================================
# Import ALL models so Alembic/Base can see them
# ==========================================
from modules.user.models import User  # noqa: F401,E402
from modules.cart.models import CartItem  # noqa: F401,E402
from modules.order.models import Order, OrderItem, OrderStatusLog  # noqa: F401,E402
from modules.purchase.models import Purchase  # noqa: F401,E402

# ==========================================
# Import routers
# ==========================================
from modules.cart.routes import router as cart_router  # noqa: E402
from modules.payment.routes import router as payment_router  # noqa: E402
from modules.order.admin_routes import router as order_admin_router  # noqa: E402
from modules.order.routes import router as order_router  # noqa: E402
from modules.purchase.routes import router as purchase_router  # noqa: E402


# ==========================================
# Background Scheduler: Stale Order Expiry
# ==========================================
def _expire_stale_orders():
    """Background job: cancel UPI orders left pending past the expiry window."""
    db = SessionLocal()
    try:
        from modules.order.service import order_service
        count = order_service.expire_stale_orders(db, settings.PENDING_ORDER_EXPIRE_MINUTES)
        if count:
            db.commit()
            scheduler_logger.info(f"Expired {count} stale pending orders")
    except Exception as e:
        db.rollback()
        scheduler_logger.error(f"Order expiry error: {e}")
    finally:
        db.close()


scheduler = BackgroundScheduler()


@asynccontextmanager
async def lifespan(app):
    # Auto-create any missing tables (safe for existing tables)
    Base.metadata.create_all(bind=engine)

    if settings.SCHEDULER_ENABLED:
        scheduler.add_job(_expire_stale_orders, 'interval', seconds=60, id='expire_orders')
        scheduler.start()
        scheduler_logger.info("Background scheduler started (order expiry: 60s)")
    yield
    if scheduler.running:
        scheduler.shutdown()
        scheduler_logger.info("Background scheduler stopped")


# ==========================================
# Create App
# ==========================================
app = FastAPI(
    title="Bookmart",
    description="Book shop cart, checkout and purchase API",
    version="1.0.0",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==========================================
# Exception handlers
# ==========================================
async def bookmart_exception_handler(request: Request, exc: BookmartError):
    return JSONResponse({"detail": exc.message}, status_code=exc.status_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
    message = first.get("msg", "Invalid request")
    return JSONResponse(
        {"detail": f"{field}: {message}" if field else message},
        status_code=400,
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse({"detail": "Server error"}, status_code=500)


app.add_exception_handler(BookmartError, bookmart_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


# ==========================================
# Middleware: Access Log
# ==========================================
_SKIP_PATHS = ("/health", "/favicon.ico")
_SENSITIVE_KEYS = re.compile(
    r'(password|api_key|secret|token|signature)=[^&]*',
    re.IGNORECASE,
)


def _identify_caller(request: Request) -> str:
    """Caller identity from the bearer token, without a DB query."""
    token = bearer_token(request.headers.get("Authorization"))
    if not token:
        return "anonymous"
    payload = decode_token(token)
    if not payload:
        return "invalid-token"
    user_id = safe_int(payload.get("userId"))
    return f"{payload.get('role') or 'user'}:{user_id}"


@app.middleware("http")
async def access_logger_middleware(request: Request, call_next):
    path = request.url.path
    if any(path.startswith(p) for p in _SKIP_PATHS):
        return await call_next(request)

    start = time.time()
    response = await call_next(request)
    elapsed_ms = int((time.time() - start) * 1000)

    query = str(request.url.query)
    if query:
        query = _SENSITIVE_KEYS.sub(lambda m: m.group(0).split("=")[0] + "=***", query)
        path = f"{path}?{query}"
    access_logger.info(
        f"{request.method} {path} {response.status_code} {elapsed_ms}ms {_identify_caller(request)}"
    )
    return response


# ==========================================
# Register Routers
# ==========================================
app.include_router(cart_router)
app.include_router(payment_router)
app.include_router(order_admin_router)
app.include_router(order_router)
app.include_router(purchase_router)


# ==========================================
# Health check
# ==========================================
@app.get("/health")
async def health():
    return {"status": "ok", "version": "1.0.0"}
