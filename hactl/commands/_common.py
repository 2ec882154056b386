"""Helpers shared by the CLI commands."""
import logging
from contextlib import contextmanager
from typing import Optional

import paramiko
import requests
import typer
from jinja2 import TemplateError

from hactl.config import Manifest, ManifestError
from hactl.engine import CommandError, Executor, LocalExecutor, PlanError, SSHExecutor
from hactl.platform import UnsupportedPlatform

logger = logging.getLogger("hactl.commands")

HANDLED_ERRORS = (
    ManifestError,
    UnsupportedPlatform,
    TemplateError,
    PlanError,
    CommandError,
    paramiko.SSHException,
    requests.RequestException,
    OSError,
)


@contextmanager
def handle_errors(action: str):
    """Turn known failures into a message and exit status 1."""
    try:
        yield
    except HANDLED_ERRORS as e:
        logger.debug(f"{action} failed", exc_info=True)
        typer.echo(f"❌ {action} failed ({type(e).__name__}): {e}", err=True)
        raise typer.Exit(code=1)


def load_manifest(path: str) -> Manifest:
    with handle_errors("Loading manifest"):
        return Manifest.load(path)


def executor_for(manifest: Optional[Manifest], host: Optional[str]) -> Executor:
    """SSH executor for a manifest host, or the local machine when no host is given."""
    if not host:
        return LocalExecutor()
    if manifest is None:
        raise ManifestError("--host needs a manifest")
    return SSHExecutor.from_target(manifest.find_host(host))
