"""CLI entrypoints for ArtLens."""

from __future__ import annotations

import asyncio
import json
import mimetypes
from pathlib import Path

import typer

from artlens.api import serve as serve_module
from artlens.config import load_settings
from artlens.errors import RecognitionError
from artlens.logging import configure_logging, get_logger
from artlens.models.attribution import AttributionResult
from artlens.orchestrator.pipeline import RecognitionPipeline
from artlens.recording import MemoryTraceRecorder

app = typer.Typer(add_completion=False, help="ArtLens painting recognition CLI")
logger = get_logger(__name__)


async def _recognize(pipeline: RecognitionPipeline, image: bytes, media_type: str) -> AttributionResult:
    try:
        return await pipeline.recognize(image, media_type)
    finally:
        await pipeline.aclose()


@app.command()
def recognize(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Photo of a painting"),
    mode: str | None = typer.Option(None, "--mode", help="Operating mode: off, shadow or enrich"),
    trace: bool = typer.Option(False, "--trace", help="Print the stage trace after the result"),
) -> None:
    """Identify the painting in IMAGE and print the JSON result."""

    settings = load_settings()
    if mode is not None:
        if mode not in ("off", "shadow", "enrich"):
            raise typer.BadParameter("mode must be one of: off, shadow, enrich")
        settings.mode = mode  # type: ignore[assignment]
    configure_logging(settings.log_level)

    media_type = mimetypes.guess_type(image.name)[0] or "image/jpeg"
    recorder = MemoryTraceRecorder()
    pipeline = RecognitionPipeline.from_settings(settings, recorder=recorder)

    logger.info("CLI recognize requested")
    try:
        result = asyncio.run(_recognize(pipeline, image.read_bytes(), media_type))
    except RecognitionError as e:
        typer.echo(json.dumps(e.to_dict(), ensure_ascii=False), err=True)
        raise typer.Exit(code=1) from e

    typer.echo(json.dumps(result.model_dump(mode="json"), ensure_ascii=False, indent=2))
    if trace:
        for event in recorder.events:
            typer.echo(f"{event.seq:>2} {event.stage.value:<15} {json.dumps(event.data, ensure_ascii=False)}")


app.command("serve")(serve_module.main)


if __name__ == "__main__":
    app()
