# cli.py
from __future__ import annotations

import logging
import os
import signal
from dataclasses import dataclass
from typing import Optional

import typer

from .core import get_http_client
from .errors import ConfigError, InputFileError, setup_logging
from .pipeline import run_pipeline
from .utils import default_dest, ensure_dir, read_lines, read_yaml

VERSION = "1.0"
DEFAULT_CONFIG = "config/config.yaml"
DEFAULT_LIST_FILE = "names.txt"

app = typer.Typer(add_completion=False, help="Enumerate and download publicly listable Azure blobs")

# ---------------- Settings resolved from flags + YAML ----------------
@dataclass
class Settings:
    account: str
    containers_file: str
    prefixes_file: str
    dest: str
    socks: Optional[str] = None
    progress: bool = False
    log_file: Optional[str] = None

# ---------------- Helpers ----------------
def _load_cfg(config_path: Optional[str]) -> dict:
    """
    Load YAML config if present, otherwise return {}.
    A missing default config is fine; a broken one is a ConfigError.
    """
    path = config_path or DEFAULT_CONFIG
    try:
        cfg = read_yaml(path)
    except FileNotFoundError:
        return {}
    return cfg or {}

def _on_interrupt(signum, frame) -> None:
    typer.echo("\nExiting...")
    # no draining: in-flight files may be left truncated
    os._exit(0)

def install_interrupt_handler() -> None:
    signal.signal(signal.SIGINT, _on_interrupt)
    signal.signal(signal.SIGTERM, _on_interrupt)

def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"Version: {VERSION}")
        raise typer.Exit()

def _fail(message: str, code: int = 1) -> None:
    typer.secho(message, fg=typer.colors.RED)
    raise typer.Exit(code=code)

# ---------------- Command ----------------
@app.command()
def main(
    ctx: typer.Context,
    account: Optional[str] = typer.Option(None, "--account", help="Azure Blob Storage account name"),
    containers: Optional[str] = typer.Option(None, "--containers", help=f"Container names file (default: {DEFAULT_LIST_FILE})"),
    dirprefixes: Optional[str] = typer.Option(None, "--dirprefixes", help=f"Directory prefix names file (default: {DEFAULT_LIST_FILE})"),
    dest: Optional[str] = typer.Option(None, "--dest", "--output", help="Directory to save downloaded blobs (default: account name)"),
    socks: Optional[str] = typer.Option(None, "--socks", help="SOCKS5 proxy address (e.g. 127.0.0.1:1080)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
    progress: Optional[bool] = typer.Option(None, "--progress/--no-progress", help="Show progress bar per listing"),
    show_errors: bool = typer.Option(False, "--show-errors/--no-show-errors", help="Print failed items after the run"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write logs to this file"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    version: bool = typer.Option(False, "--version", callback=_version_callback, is_eager=True, help="Display version information"),
):
    install_interrupt_handler()
    typer.secho(f"AzBlobFlow v{VERSION}\n", fg=typer.colors.BLUE, bold=True)

    try:
        cfg = _load_cfg(config)
    except (ConfigError, OSError) as e:
        _fail(f"Error loading config: {e}")
    bcfg = (cfg.get("blobflow") or {}) if cfg else {}

    # resolve values: CLI flag -> YAML -> default
    account_val = account or bcfg.get("account")
    containers_val = containers or bcfg.get("containers", DEFAULT_LIST_FILE)
    prefixes_val = dirprefixes or bcfg.get("dirprefixes", DEFAULT_LIST_FILE)
    if not account_val or not containers_val or not prefixes_val:
        typer.echo("Provide the account, containers file, and directory prefixes file.")
        typer.echo(ctx.get_help())
        raise typer.Exit(code=1)

    settings = Settings(
        account=account_val,
        containers_file=containers_val,
        prefixes_file=prefixes_val,
        dest=dest or bcfg.get("dest") or default_dest(account_val),
        socks=socks or bcfg.get("socks"),
        progress=progress if progress is not None else bool(bcfg.get("progress", False)),
        log_file=log_file or bcfg.get("log_file"),
    )

    setup_logging(level=logging.DEBUG if verbose else logging.INFO, logfile=settings.log_file)
    log = logging.getLogger("blob_utils.cli")

    try:
        container_names = read_lines(settings.containers_file)
    except InputFileError as e:
        _fail(f"Error reading containers file: {e}")
    try:
        prefixes = read_lines(settings.prefixes_file)
    except InputFileError as e:
        _fail(f"Error reading directory prefixes file: {e}")

    try:
        ensure_dir(settings.dest)
    except OSError as e:
        _fail(f"Error creating destination directory: {e}")

    try:
        session = get_http_client(settings.socks)
    except ConfigError as e:
        _fail(str(e))

    log.debug(
        "Account=%s Containers=%d Prefixes=%d Dest=%s Socks=%s",
        settings.account, len(container_names), len(prefixes), settings.dest, settings.socks or "-",
    )

    with session:
        res = run_pipeline(
            session,
            settings.account,
            container_names,
            prefixes,
            settings.dest,
            progress=settings.progress,
        )

    typer.secho("****** Finished ******", fg=typer.colors.GREEN)
    log.info(
        "Containers=%d/%d Listings=%d Downloaded=%d Errors=%d Dest=%s",
        res["stats"]["containers_valid"],
        res["stats"]["containers_total"],
        res["stats"]["listings"],
        res["stats"]["downloaded"],
        res["stats"]["errors_count"],
        res["stats"]["dst_root"],
    )

    if show_errors and res.get("errors"):
        for e in res["errors"]:
            typer.echo(f"[ERROR] {e}")
