"""Command line entry point."""
import typing
from pathlib import Path

import typer

from hostprep.console import FATAL, INFO, configure_logging, reset_logging
from hostprep.contrib.ubuntu.container import ProvisioningContainer
from hostprep.errors import CommandFailed, InsufficientPrivilege, LookupNotFound
from hostprep.kubeconfig import KubeconfigMerger
from hostprep.summary import collect_versions, render_public_key, render_report, render_versions
from hostprep.system import CommandRunner

app = typer.Typer(
    name="hostprep",
    help="Provision a freshly installed Ubuntu server in one idempotent pass.",
    add_completion=False,
)


def provision(container=ProvisioningContainer, log_file: typing.Optional[Path] = None) -> int:
    """Run the plan and print its summary. Returns the process exit status."""
    settings = container.settings
    destinations = configure_logging(log_file or settings.log_file)
    try:
        typer.echo(f"{INFO} Starting provisioning...")
        sequencer = container.sequencer
        try:
            report = sequencer.run()
        except InsufficientPrivilege:
            return 1

        typer.echo(f"{INFO} Steps:")
        for line in render_report(report):
            typer.echo(line)
        if report.aborted:
            typer.echo(f"{FATAL} Provisioning stopped at: {report.failure.step}", err=True)
            return report.exit_code

        typer.echo(f"{INFO} Summary:")
        for line in render_versions(collect_versions(container.runner, container.accounts, settings.user)):
            typer.echo(line)

        typer.echo(f"{INFO} Public SSH key (add this to services that need it):")
        public_key = settings.ssh_key_path.with_name(settings.ssh_key_path.name + ".pub")
        for line in render_public_key(public_key):
            typer.echo(line)

        typer.echo(f"{INFO} Provisioning complete. Start a new shell or run: exec {settings.login_shell}")
        return report.exit_code
    finally:
        reset_logging(destinations)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    log_file: typing.Optional[Path] = typer.Option(
        None, "--log-file", help="Where to write the JSON log (default: $HOSTPREP_LOG_FILE or /var/log/hostprep.log)"
    ),
):
    """Provision this host when no command is given."""
    if ctx.invoked_subcommand is not None:
        return
    raise typer.Exit(provision(log_file=log_file))


@app.command("lke-save")
def lke_save(label: str = typer.Argument("", help="The label of the LKE cluster")):
    """Merge an LKE cluster's kubeconfig into ~/.kube/config."""
    if not label:
        typer.echo("Usage: lke-save <cluster-label>", err=True)
        raise typer.Exit(1)

    destinations = configure_logging(None)
    try:
        merged = KubeconfigMerger(runner=CommandRunner()).save(label)
    except LookupNotFound as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(LookupNotFound.exit_code)
    except CommandFailed as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1)
    finally:
        reset_logging(destinations)

    typer.echo(f"Merged kubeconfig for cluster {label} (id: {merged.cluster_id})")
