import typer

from hactl.config import Config
from hactl.rendering import render_authkeys, render_main_config

from ._common import handle_errors, load_manifest

app = typer.Typer(help="Render configuration files without applying them.")


@app.command("ha-cf")
def ha_cf_cmd(
    manifest_path: str = typer.Option(Config.MANIFEST, "--file", "-f", help="Cluster manifest"),
):
    """Print the rendered ha.cf."""
    manifest = load_manifest(manifest_path)
    template = manifest.sources.config_template
    with handle_errors("Rendering ha.cf"):
        content = render_main_config(
            manifest.cluster,
            manifest.resolve_reference(template) if template else None,
        )
    typer.echo(content, nl=False)


@app.command("authkeys")
def authkeys_cmd(
    manifest_path: str = typer.Option(Config.MANIFEST, "--file", "-f", help="Cluster manifest"),
):
    """Print the authkeys file (contains the shared secret)."""
    manifest = load_manifest(manifest_path)
    typer.echo(render_authkeys(manifest.cluster.authkey), nl=False)
