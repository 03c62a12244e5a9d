from __future__ import annotations

import logging
import os
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from .api.routes import router
from .core.config import get_settings
from .services.newick import TreeParseError
from .services.sample_store import SampleTableError
from .services.tree_service import get_phylomap_service

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    # A configured tree is loaded before serving so a broken file stops startup.
    settings = get_settings()
    if settings.default_tree_path is not None:
        service = get_phylomap_service()
        try:
            service.load_tree()
            service.load_samples()
        except (OSError, TreeParseError, SampleTableError):
            logger.exception(
                "Configured data could not be loaded",
                extra={
                    "tree_path": str(settings.default_tree_path),
                    "samples_path": str(settings.default_samples_path),
                },
            )
            raise
    yield


app = FastAPI(title="PhyloMap", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api")

@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


def _resolve_static_dir() -> Path:
    # 1) Explicit override (used by packagers like PyInstaller).
    env_dir = os.environ.get("PHYLOMAP_STATIC_DIR")
    if env_dir:
        return Path(env_dir)

    # 2) PyInstaller onefile/onedir extraction directory.
    meipass = getattr(sys, "_MEIPASS", None)
    if meipass:
        return Path(meipass) / "frontend" / "static"

    # 3) Source tree layout.
    return Path(__file__).resolve().parent.parent.parent / "frontend" / "static"


static_dir = _resolve_static_dir()

if static_dir.exists():
    app.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
