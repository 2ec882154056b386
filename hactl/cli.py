import logging

import typer

from hactl.commands import manifest, node, render
from hactl.config import Config
from hactl.logging import setup_logger

app = typer.Typer(help="Provision heartbeat/pacemaker high-availability nodes.")

# Global debug flag
debug_mode = False


def setup_logging(debug_mode: bool = False) -> logging.Logger:
    """Configure logging based on debug mode."""
    level = logging.DEBUG if debug_mode else getattr(logging, Config.LOG_LEVEL, logging.INFO)
    logger = setup_logger("hactl", level)
    # Disable debug logging for noisy libraries
    if not debug_mode:
        logging.getLogger('paramiko').setLevel(logging.WARNING)
        logging.getLogger('urllib3').setLevel(logging.WARNING)
    return logger


# Add all command groups
app.add_typer(node.app, name="node")
app.add_typer(render.app, name="render")
app.add_typer(manifest.app, name="manifest")


# Global options callback
@app.callback()
def main(
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug logging"),
):
    """hactl - heartbeat/pacemaker node provisioning."""
    global debug_mode
    debug_mode = debug
    logger = setup_logging(debug)
    if debug:
        logger.debug("Debug mode enabled")


if __name__ == "__main__":
    app()
