"""
Insulation Catalog API
FastAPI backend with async PostgreSQL for companies, product types and the
global property-definition schema.
"""
import os
import logging
from contextlib import asynccontextmanager
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse
from app.api.deps import expose_errors
from app.services.logging_config import setup_logging
from app.services.middleware import RequestTimingMiddleware

load_dotenv()

_log_level = os.getenv("LOG_LEVEL", "INFO")
_json_logs = os.getenv("LOG_FORMAT", "json").lower() != "text"
setup_logging(level=_log_level, json_output=_json_logs)
logger = logging.getLogger("catalog-api")

APP_VERSION = "1.0.0"

# Startup validation
if not os.getenv("DATABASE_URL"):
    logger.warning("MISSING env var: DATABASE_URL, running in dev mode")


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.db import init_db
    try:
        await init_db()
        logger.info("SQLAlchemy models synced.")
    except Exception as e:
        logger.warning(f"Table init skipped (DB not available): {e}")
    yield


app = FastAPI(
    title="Insulation Catalog API",
    version=APP_VERSION,
    description="Product catalog, suppliers and canonical product properties",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Error envelope: {success: false, message, error?}
# ---------------------------------------------------------------------------
def _clean_message(msg: str) -> str:
    return msg.removeprefix("Value error, ")


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    body = {"success": False}
    if isinstance(exc.detail, dict):
        body.update(exc.detail)
    else:
        body["message"] = str(exc.detail)
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ())[1:]), "message": _clean_message(err.get("msg", ""))}
        for err in exc.errors()
    ]
    message = "; ".join(e["message"] for e in errors) or "Validation error"
    return JSONResponse(status_code=400, content={"success": False, "message": message, "errors": errors})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
    body = {"success": False, "message": "Internal server error"}
    if expose_errors():
        body["error"] = str(exc)
    return JSONResponse(status_code=500, content=body)


# ---------------------------------------------------------------------------
# CORS: restricted to allowed origins from env
# ---------------------------------------------------------------------------
_cors_default = "http://localhost:3000,http://localhost:8000"
cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", _cors_default).split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Requested-With"],
)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

# Routers
from app.api.company_routes import router as company_router
from app.api.product_type_routes import router as product_type_router
from app.api.property_definition_routes import router as property_definition_router

app.include_router(company_router)
app.include_router(product_type_router)
app.include_router(property_definition_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": APP_VERSION,
        "environment": os.getenv("ENVIRONMENT", "development"),
        "db_configured": bool(os.getenv("DATABASE_URL")),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=True)
