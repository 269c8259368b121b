import logging
import os
from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from dotenv import load_dotenv

load_dotenv()

from balchhi.db.db import create_db_and_tables  # noqa: E402
from balchhi.logging_config import configure_logging  # noqa: E402
from balchhi.routers import (  # noqa: E402
    admin_verifications,
    claims,
    items,
    notifications,
    organizations,
    uploads,
)
from balchhi.utils.errors import WorkflowError  # noqa: E402

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    yield


app = FastAPI(title="Balchhi", lifespan=lifespan)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ORIGINS", "http://localhost:3000").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(HTTPException)
async def http_error_handler(request: Request, exc: HTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail}, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", [])[1:])
    message = f"{field}: {first.get('msg')}" if field else "Invalid request"

    return JSONResponse(status_code=400, content={"error": message, "details": errors})


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Unexpected persistence failure"})


# Register routers
app.include_router(items.router, prefix="/items", tags=["Items"])
app.include_router(claims.router, prefix="/claims", tags=["Claims"])
app.include_router(organizations.router, prefix="/organizations", tags=["Organizations"])
app.include_router(admin_verifications.router, prefix="/admin/verifications", tags=["Admin"])
app.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
app.include_router(uploads.router, prefix="/uploads", tags=["Uploads"])


@app.get("/")
def root():
    return {"status": "ok"}
