from __future__ import annotations

import os
import sys
import threading
import time
import webbrowser
from pathlib import Path

import uvicorn


def _resource_path(relative: str) -> Path:
    """Return an absolute path to a bundled resource (PyInstaller) or repo file."""

    base = Path(getattr(sys, "_MEIPASS", Path(__file__).resolve().parent))
    return base / relative


def main() -> None:
    # Runtime data directory:
    # - packaged app: default to ~/PhyloMap-data
    # - source run:   default to ./data (handled by Settings)
    if "PHYLOMAP_DATA_DIR" not in os.environ:
        if hasattr(sys, "_MEIPASS"):
            os.environ["PHYLOMAP_DATA_DIR"] = str(Path.home() / "PhyloMap-data")

    # The tree/map frontend ships at `frontend/static` next to this file.
    os.environ.setdefault("PHYLOMAP_STATIC_DIR", str(_resource_path("frontend/static")))

    host = os.environ.get("PHYLOMAP_HOST", "127.0.0.1")
    port = int(os.environ.get("PHYLOMAP_PORT", "8000"))

    url = f"http://{host}:{port}/"

    def opener() -> None:
        # Give uvicorn a moment to start before opening the browser.
        time.sleep(1.0)
        if not webbrowser.open(url):
            print(f"PhyloMap is running at {url}", file=sys.stderr)

    threading.Thread(target=opener, daemon=True).start()

    # Import the app object directly so PyInstaller bundles `backend/`.
    from backend.app.main import app as fastapi_app  # noqa: PLC0415

    uvicorn.run(
        fastapi_app,
        host=host,
        port=port,
        log_level=os.environ.get("PHYLOMAP_LOG_LEVEL", "info"),
    )


if __name__ == "__main__":
    main()
