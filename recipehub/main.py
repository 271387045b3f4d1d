# RecipeHub API Main Entry Point
import logging
import sys

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException

from .core.responses import error_body
from .errors import AccountLocked, ServiceError
from .infra.rate_limit import limiter, rate_limit_exceeded_handler
from .routers.admin import router as admin_router
from .routers.auth import router as auth_router
from .routers.chef import router as chef_router
from .routers.community import router as community_router
from .routers.dev import router as dev_router
from .routers.notifications import router as notifications_router
from .routers.ready import router as ready_router
from .routers.recipes import router as recipes_router
from .routers.users import router as users_router
from .settings import settings
from .storage.local import media_root

API_PREFIX = "/api/v1"

# Configure structured logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler(sys.stdout)]
)
logger = logging.getLogger("recipehub")

app = FastAPI(title="RecipeHub API", version="1.0.0")

# Rate limiter (per client identifier)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if isinstance(exc, AccountLocked):
        logger.info(f"Locked account login attempt on {request.url.path}")
    elif exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message, exc.errors))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(status_code=exc.status_code, content=error_body(message), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
            "message": err.get("msg", "Invalid value"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=error_body("Validation failed", errors))


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(status_code=409, content=error_body("Resource already exists"))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content=error_body("Internal server error"))


app.include_router(ready_router, prefix=API_PREFIX, tags=["ready"])
app.include_router(auth_router, prefix=f"{API_PREFIX}/auth", tags=["auth"])
app.include_router(recipes_router, prefix=f"{API_PREFIX}/recipes", tags=["recipes"])
app.include_router(community_router, prefix=f"{API_PREFIX}/community", tags=["community"])
app.include_router(users_router, prefix=f"{API_PREFIX}/users", tags=["users"])
app.include_router(admin_router, prefix=f"{API_PREFIX}/admin", tags=["admin"])
app.include_router(chef_router, prefix=f"{API_PREFIX}/chef", tags=["chef"])
app.include_router(notifications_router, prefix=f"{API_PREFIX}/notifications", tags=["notifications"])

if settings.storage_backend == "local":
    app.mount("/media", StaticFiles(directory=media_root(), check_dir=False), name="media")

if not settings.is_production:
    app.include_router(dev_router, prefix=API_PREFIX, tags=["dev"])
