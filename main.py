from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import sys
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(sys.executable).resolve().parent if getattr(sys, "frozen", False) else Path(__file__).resolve().parent
load_dotenv(BASE_DIR / ".env", override=True)

import app.models  # ensure models are registered
from app.core.config import CORS_ORIGINS, LOG_LEVEL, LOG_JSON
from app.core.errors import FinanceError
from app.schemas.result_schemas import Failure
from app.utils.database import engine, Base
from app.utils.logging_config import configure_logging, get_logger
from app.utils.responses import status_for

from app.routers import (
    payments_router,
    salaries_router,
    rates_router,
    expenses_router,
    reports_router,
)

configure_logging(LOG_LEVEL, LOG_JSON)
logger = get_logger("app.main")

app = FastAPI(title="School Settlement Backend API", version="1.0")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Routers
app.include_router(payments_router.router)
app.include_router(salaries_router.router)
app.include_router(rates_router.router)
app.include_router(expenses_router.router)
app.include_router(reports_router.router)


@app.exception_handler(FinanceError)
def finance_error_handler(request: Request, exc: FinanceError):
    # raised outside a service boundary, e.g. by the auth dependency
    failure = Failure.from_error(exc)
    return JSONResponse(status_code=status_for(failure), content=failure.model_dump(mode="json"))


@app.on_event("startup")
def on_startup():
    # DEV ONLY: production schema is managed by migrations
    Base.metadata.create_all(bind=engine)
    logger.info("startup_complete", extra={"database": engine.url.render_as_string(hide_password=True)})


@app.get("/")
def root():
    return {"message": "School settlement backend is running"}
