"""Uvicorn server launcher.

The app is built through its factory so each worker process constructs one pipeline, and
with it one result cache, at startup.
"""

from __future__ import annotations

import os
from typing import Annotated, Optional

import typer
import uvicorn

from artlens.config import load_settings


def main(
    host: Annotated[str, typer.Option(help="Bind host")] = "0.0.0.0",
    port: Annotated[int, typer.Option(help="Bind port")] = 8000,
    mode: Annotated[Optional[str], typer.Option(help="Override ARTLENS_MODE (off, shadow, enrich)")] = None,
    reload: Annotated[bool, typer.Option(help="Enable auto-reload (dev)")] = False,
) -> None:
    """Start the ArtLens API server."""

    if mode is not None:
        if mode not in ("off", "shadow", "enrich"):
            raise typer.BadParameter("mode must be one of: off, shadow, enrich")
        # Read again by the app factory inside the server process
        os.environ["ARTLENS_MODE"] = mode

    settings = load_settings()
    uvicorn.run(
        "artlens.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    typer.run(main)
