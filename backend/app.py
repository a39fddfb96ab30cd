import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from backend.routes import router
from ihunt_vtt.config import get_config
from ihunt_vtt.errors import ConflictError, DocumentNotFound
from ihunt_vtt.store import DocumentStore, JsonFileStore

load_dotenv(Path(__file__).parent.parent / ".env")

DEFAULT_DATA_DIR = Path(__file__).parent.parent / "data"

logger = logging.getLogger(__name__)


async def _conflict(request: Request, exc: ConflictError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": str(exc), "title": exc.title})


async def _not_found(request: Request, exc: DocumentNotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": str(exc)})


def create_app(data_dir: Path | None = None, store: DocumentStore | None = None) -> FastAPI:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    resolved = data_dir or Path(os.getenv("DATA_DIR", str(DEFAULT_DATA_DIR)))
    config = get_config(resolved)

    app = FastAPI(title="iHUNT VTT")
    app.state.data_dir = resolved
    app.state.config = config
    app.state.store = store or JsonFileStore(resolved / "store", max_attempts=config.transaction_attempts)
    app.add_exception_handler(ConflictError, _conflict)
    app.add_exception_handler(DocumentNotFound, _not_found)
    app.include_router(router, prefix="/api")
    logger.info(f"Serving table data from {resolved}")
    return app


# Default app instance for uvicorn (uses DATA_DIR env var or default)
app = create_app()
