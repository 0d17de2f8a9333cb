# storyforest/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import auth, routes
from .catalog.router import router as catalog_router
from .config import get_settings
from .database import init_db


logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    configure_logging(settings.log_level)
    init_db()
    logger.info("%s ready", settings.app_name)
    yield


settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description=(
        "Per-child book libraries and wishlists for parents, with book search "
        "over Google Books and Open Library, ISBN lookup for barcode scans and "
        "discovery of other families' public libraries."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials="*" not in settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"error": jsonable_encoder(exc.errors())})


app.include_router(auth.router)
app.include_router(routes.router)
app.include_router(catalog_router)


@app.get("/")
def health_check():
    return {"status": "ok", "message": f"{settings.app_name} API"}
