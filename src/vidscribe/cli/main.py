"""Root CLI group for vidscribe."""

from __future__ import annotations

from pathlib import Path

import click

from vidscribe import __version__


@click.group()
@click.version_option(version=__version__, prog_name="vidscribe")
@click.option(
    "--config", "-c",
    default="vidscribe.yaml",
    type=click.Path(),
    help="Path to vidscribe.yaml",
)
@click.pass_context
def cli(ctx: click.Context, config: str) -> None:
    """vidscribe: cheapest-first transcripts, chunks and embeddings for creator videos."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = Path(config).resolve()


# Import and register subcommands
from vidscribe.cli.init_cmd import init_cmd  # noqa: E402
from vidscribe.cli.add_cmd import add_cmd  # noqa: E402
from vidscribe.cli.run_cmd import process_cmd, reprocess_cmd  # noqa: E402
from vidscribe.cli.status_cmd import status_cmd  # noqa: E402
from vidscribe.cli.costs_cmd import costs_cmd  # noqa: E402
from vidscribe.cli.maintenance_cmd import recover_cmd, rollup_cmd  # noqa: E402

cli.add_command(init_cmd, "init")
cli.add_command(add_cmd, "add")
cli.add_command(process_cmd, "process")
cli.add_command(reprocess_cmd, "reprocess")
cli.add_command(status_cmd, "status")
cli.add_command(costs_cmd, "costs")
cli.add_command(recover_cmd, "recover")
cli.add_command(rollup_cmd, "rollup")
