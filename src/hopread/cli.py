"""CLI implementation for hopread."""

import base64
import json
import shutil
import sys
from pathlib import Path
from typing import Optional

import typer

from . import open_stream
from .config import Settings
from .core.credentials import Credentials
from .core.log import configure_logging
from .core.model import HopReadError, ReadStatistics

app = typer.Typer(add_completion=False, help="Stream files out of a WebHDFS-style filesystem.")


def _credentials(user: Optional[str], proxy_user: Optional[str], token: Optional[str]) -> Credentials:
    if proxy_user:
        # act as --user through the --proxy-user account
        return Credentials(user=user, real_user=proxy_user, token=token)
    return Credentials(user=user, token=token)


def _settings(buffer_size: Optional[int], log_level: Optional[str]) -> Settings:
    settings = Settings.from_env()
    configure_logging(log_level or settings.log_level)
    if buffer_size is not None:
        return Settings(
            buffer_size=buffer_size,
            connect_timeout=settings.connect_timeout,
            read_timeout=settings.read_timeout,
            retry=settings.retry,
            log_level=settings.log_level,
        )
    return settings


@app.command()
def cat(
    namenode: str = typer.Argument(..., help="Base URL of the namenode, e.g. http://nn:9870"),
    path: str = typer.Argument(..., help="Absolute path of the file to read"),
    offset: int = typer.Option(0, "--offset", min=0, help="Start reading at this byte"),
    length: Optional[int] = typer.Option(None, "--length", min=0, help="Stop after N bytes"),
    read_param: Optional[str] = typer.Option(None, "--read-param", help="Opaque read-mode string sent as the ReadParam header"),
    buffer_size: Optional[int] = typer.Option(None, "--buffer-size", min=1, help="Read buffer size in bytes"),
    user: Optional[str] = typer.Option(None, "--user", help="User name to read as"),
    proxy_user: Optional[str] = typer.Option(None, "--proxy-user", help="Real user when reading on behalf of --user"),
    token: Optional[str] = typer.Option(None, "--token", help="Delegation token"),
    output: Optional[Path] = typer.Option(None, "-o", "--output", help="Write to PATH instead of stdout"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (default from HOPREAD_LOG_LEVEL)"),
):
    """Copy a file (or a byte range of it) to stdout or PATH."""
    settings = _settings(buffer_size, log_level)
    sink = open(output, "wb") if output else sys.stdout.buffer
    try:
        with open_stream(namenode, path, read_param=read_param,
                         credentials=_credentials(user, proxy_user, token), settings=settings) as stream:
            if offset:
                stream.seek(offset)
            if length is None:
                shutil.copyfileobj(stream, sink, settings.buffer_size)
            else:
                remaining = length
                while remaining > 0:
                    chunk = stream.read(min(remaining, settings.buffer_size))
                    if not chunk:
                        break
                    sink.write(chunk)
                    remaining -= len(chunk)
        sink.flush()
    except HopReadError as e:
        typer.echo(f"hopread: {e}", err=True)
        raise typer.Exit(code=1)
    finally:
        if output:
            sink.close()


@app.command()
def probe(
    namenode: str = typer.Argument(..., help="Base URL of the namenode, e.g. http://nn:9870"),
    path: str = typer.Argument(..., help="Absolute path of the file to probe"),
    bytes: int = typer.Option(1, "--bytes", min=0, help="Peek first N bytes (Base64)"),
    read_param: Optional[str] = typer.Option(None, "--read-param", help="Opaque read-mode string sent as the ReadParam header"),
    user: Optional[str] = typer.Option(None, "--user", help="User name to read as"),
    token: Optional[str] = typer.Option(None, "--token", help="Delegation token"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Log level (default from HOPREAD_LOG_LEVEL)"),
):
    """Open a file, read its first bytes and report where it is served from."""
    settings = _settings(None, log_level)
    stats = ReadStatistics()
    try:
        with open_stream(namenode, path, read_param=read_param, credentials=_credentials(user, None, token),
                         settings=settings, statistics=stats) as stream:
            peek = stream.read(bytes)
            runner = stream.runner
            payload = {
                "path": path,
                "resolved_url": runner.resolved_url,
                "known_length": runner.file_length,
                "exclusions": list(runner.exclusions),
                "bytes_read": stats.bytes_read,
                "peek": base64.b64encode(peek).decode("ascii"),
            }
    except HopReadError as e:
        typer.echo(json.dumps({"path": path, "success": False, "error": str(e)}), err=True)
        raise typer.Exit(code=1)

    typer.echo(json.dumps(payload, indent=2))


if __name__ == "__main__":
    app()
