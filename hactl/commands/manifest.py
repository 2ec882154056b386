import typer

from hactl.config import Config
from hactl.utils import dump_yaml, redact_sensitive_data

from ._common import load_manifest

app = typer.Typer(help="Inspect cluster manifests.")


@app.command("show")
def show_cmd(
    manifest_path: str = typer.Option(Config.MANIFEST, "--file", "-f", help="Cluster manifest"),
    show_secrets: bool = typer.Option(False, help="Do not redact secrets"),
):
    """Validate a manifest and print it with defaults filled in."""
    manifest = load_manifest(manifest_path)
    data = manifest.to_dict()
    if not show_secrets:
        data = redact_sensitive_data(data)
    typer.echo(dump_yaml(data), nl=False)
