from typing import List, Optional

import typer

from hactl.config import Config
from hactl.engine import Converger
from hactl.platform import Facts, detect_facts, normalize_arch, normalize_family
from hactl.plan import plan_for_manifest
from hactl.utils import dump_yaml

from ._common import executor_for, handle_errors, load_manifest

app = typer.Typer(help="Inspect, plan and converge cluster nodes.")


@app.command("facts")
def facts_cmd(
    manifest_path: str = typer.Option(Config.MANIFEST, "--file", "-f", help="Cluster manifest"),
    host: Optional[str] = typer.Option(None, help="Manifest host to inspect (default: this machine)"),
):
    """Show the OS facts used to pick the package set."""
    manifest = load_manifest(manifest_path) if host else None
    with handle_errors("Detecting facts"):
        with executor_for(manifest, host) as executor:
            facts = detect_facts(executor)
    typer.echo(dump_yaml(facts.to_dict()), nl=False)


@app.command("plan")
def plan_cmd(
    manifest_path: str = typer.Option(Config.MANIFEST, "--file", "-f", help="Cluster manifest"),
    host: Optional[str] = typer.Option(None, help="Manifest host to plan for (default: this machine)"),
    os_family: Optional[str] = typer.Option(None, help="Plan for this OS family instead of detecting it"),
    os_release: str = typer.Option("", help="OS release used with --os-family"),
    arch: str = typer.Option("x86_64", help="Architecture used with --os-family"),
    show_secrets: bool = typer.Option(False, help="Include secret file content in the output"),
):
    """Print the resources that would be declared for a node."""
    manifest = load_manifest(manifest_path)
    with handle_errors("Planning"):
        if os_family:
            facts = Facts(
                os_family=normalize_family(os_family),
                os_name=os_family,
                os_release=os_release,
                architecture=normalize_arch(arch),
            )
        else:
            with executor_for(manifest, host) as executor:
                facts = detect_facts(executor)
        plan = plan_for_manifest(manifest, facts)
    typer.echo(dump_yaml(plan.to_dict(redact=not show_secrets)), nl=False)


@app.command("apply")
def apply_cmd(
    manifest_path: str = typer.Option(Config.MANIFEST, "--file", "-f", help="Cluster manifest"),
    host: Optional[str] = typer.Option(None, help="Manifest host to converge (default: this machine)"),
    all_hosts: bool = typer.Option(False, "--all", help="Converge every host in the manifest, one at a time"),
    dry_run: bool = typer.Option(False, help="Only report what would change"),
):
    """Converge nodes to the declared state."""
    if host and all_hosts:
        raise typer.BadParameter("Use either --host or --all, not both")

    manifest = load_manifest(manifest_path)
    targets: List[Optional[str]] = [host]
    if all_hosts:
        if not manifest.hosts:
            typer.echo("❌ The manifest defines no hosts", err=True)
            raise typer.Exit(code=1)
        targets = [h.name for h in manifest.hosts]

    failed = []
    for target in targets:
        name = target or "localhost"
        with handle_errors(f"Applying on {name}"):
            with executor_for(manifest, target) as executor:
                facts = detect_facts(executor)
                plan = plan_for_manifest(manifest, facts)
                report = Converger(executor, dry_run=dry_run).converge(plan)

        for event in report.events:
            typer.echo(f"{name}: {event}")
        for ref, error in report.failed.items():
            typer.echo(f"{name}: {ref}: failed: {error}", err=True)
        for ref in report.skipped:
            typer.echo(f"{name}: {ref}: skipped", err=True)
        if not report.events and report.ok:
            typer.echo(f"{name}: in sync")
        if not report.ok:
            failed.append(name)

    if failed:
        typer.echo(f"❌ Failed on: {', '.join(failed)}", err=True)
        raise typer.Exit(code=1)
