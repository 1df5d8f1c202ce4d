import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import config
import models  # noqa: F401  registers the tables on Base
from database import Base, engine, get_db
from errors import ShareLinkError
from share_routes import router as secure_link_router, page_router
from storage import storage
from sweeper import LinkSweeper

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

Base.metadata.create_all(bind=engine)


@asynccontextmanager
async def lifespan(app: FastAPI):
    sweeper = None
    if config.SECURE_LINK_TTL_SECONDS > 0 and config.SECURE_LINK_SWEEP_INTERVAL > 0:
        sweeper = LinkSweeper(config.SECURE_LINK_TTL_SECONDS, config.SECURE_LINK_SWEEP_INTERVAL)
        sweeper.start()
    yield
    if sweeper is not None:
        sweeper.stop()


app = FastAPI(
    title="Share Space Secure Links",
    description="One-time, self-destructing file links",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(secure_link_router)
app.include_router(page_router)


# ─── Exception handlers ───────────────────────────────────────────────────────
@app.exception_handler(ShareLinkError)
async def share_link_error_handler(request: Request, exc: ShareLinkError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{field}: {first.get('msg')}" if field else first.get("msg")
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} request")
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ─── Health ───────────────────────────────────────────────────────────────────

@app.get("/health", tags=["System"])
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError as e:
        logger.error(f"Health check database error: {e}")
        database = "unavailable"
    return {
        "status": "ok" if database == "ok" else "degraded",
        "service": "Share Space Secure Links",
        "version": "1.0.0",
        "database": database,
        "storage": storage.health(),
    }
