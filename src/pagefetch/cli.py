from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import typer
from dotenv import load_dotenv

from .core.keys import K_CHUNKS, K_META, K_TEXT, K_URL
from .service import ServiceSettings, run
from .workflows.chunking import chunk_text
from .workflows.doctor import build_doctor_report, format_doctor_report
from .workflows.errors import PageFetchError
from .workflows.fetch_config import (
    DEFAULT_CHUNK_OVERLAP,
    DEFAULT_MAX_CHUNKS,
    ENV_ALLOW_PRIVATE,
    ENV_DEBUG,
)
from .workflows.fetch_utils import env_bool
from .workflows.page_fetch import fetch_page_sync
from .workflows.security import check_target

app = typer.Typer(no_args_is_help=True, help="Fetch a web page and print its readable text.")


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.callback()
def main() -> None:
    load_dotenv()


@app.command("doctor")
def doctor_cmd() -> None:
    """Print resolved configuration and dependency diagnostics."""
    report = build_doctor_report()
    typer.echo(format_doctor_report(report))
    raise typer.Exit(code=0 if report.get("ok", True) else 2)


@app.command("get")
def get_url(
    url: str = typer.Argument(..., help="URL to fetch."),
    meta: bool = typer.Option(False, "--meta", help="Include title/byline/excerpt/method/via."),
    json_out: bool = typer.Option(False, "--json", help="Print a JSON payload instead of plain text."),
    no_fallbacks: bool = typer.Option(False, "--no-fallbacks", help="Only try the direct URL."),
    timeout_ms: Optional[int] = typer.Option(None, "--timeout-ms", help="Overall deadline in milliseconds."),
    max_chars: Optional[int] = typer.Option(None, "--max-chars", help="Truncate text to this many characters."),
    max_bytes: Optional[int] = typer.Option(None, "--max-bytes", help="Abort responses larger than this."),
    redirect_limit: Optional[int] = typer.Option(None, "--redirect-limit", help="Maximum redirects to follow."),
    ua_mode: Optional[str] = typer.Option(None, "--ua-mode", help="fixed or url."),
    ua_family: Optional[str] = typer.Option(None, "--ua-family", help="desktop, mobile or tablet."),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", help="Also emit overlapping chunks of this size."),
    chunk_overlap: int = typer.Option(DEFAULT_CHUNK_OVERLAP, "--chunk-overlap", help="Chunk overlap in characters."),
    max_chunks: int = typer.Option(DEFAULT_MAX_CHUNKS, "--max-chunks", help="Maximum number of chunks."),
    allow_private: bool = typer.Option(False, "--allow-private", help="Permit loopback and private targets."),
    debug: bool = typer.Option(False, "--debug", help="Log every attempt."),
) -> None:
    """Fetch a single URL and print its readable text."""
    debug = debug or env_bool(ENV_DEBUG, False)
    _configure_logging(debug)

    allow_private = allow_private or env_bool(ENV_ALLOW_PRIVATE, False)
    try:
        target = check_target(url, allow_private)
    except PageFetchError as exc:  # InvalidUrl or BlockedHost
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=2)

    try:
        outcome = fetch_page_sync(
            target,
            max_chars=max_chars,
            timeout_ms=timeout_ms,
            max_bytes=max_bytes,
            follow=redirect_limit,
            user_agent_mode=ua_mode,
            user_agent_family=ua_family,
            allow_fallbacks=False if no_fallbacks else None,
            include_meta=meta,
            allow_private=allow_private,
            debug=debug,
        )
    except PageFetchError as exc:
        typer.echo(f"fetch failed: {exc}", err=True)
        raise typer.Exit(code=1)

    chunks = None
    if chunk_size:
        chunks = chunk_text(outcome.text, chunk_size=chunk_size, overlap=chunk_overlap, max_chunks=max_chunks)

    if json_out:
        payload: Dict[str, Any] = {K_URL: target, K_TEXT: outcome.text}
        if meta:
            payload[K_META] = outcome.meta()
        if chunks is not None:
            payload[K_CHUNKS] = chunks
        typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))
        return

    if meta:
        for key, value in outcome.meta().items():
            if value:
                typer.echo(f"{key}: {value}")
        typer.echo("")
    if chunks is not None:
        for index, chunk in enumerate(chunks, 1):
            typer.echo(f"--- chunk {index}/{len(chunks)} ---")
            typer.echo(chunk)
        return
    typer.echo(outcome.text)


@app.command("serve")
def serve_cmd(
    host: str = typer.Option("0.0.0.0", "--host", help="Interface to bind."),
    port: Optional[int] = typer.Option(None, "--port", help="Port (default FETCH_SERVICE_PORT or 8787)."),
) -> None:
    """Run the HTTP fetch service."""
    settings = ServiceSettings.from_env()
    _configure_logging(settings.debug)
    run(host=host, port=port, settings=settings)


if __name__ == "__main__":
    app()
