"""vidscribe init — write a default config and create the database."""

from __future__ import annotations

import click

from vidscribe.db.connection import Database
from vidscribe.models.config import Settings
from vidscribe.utils.io import write_yaml
from vidscribe.utils.progress import log_success, log_warning


@click.command()
@click.option("--database", "database_url", default=None, help="SQLAlchemy database URL")
@click.option("--force", is_flag=True, help="Overwrite an existing config file")
@click.pass_context
def init_cmd(ctx: click.Context, database_url: str | None, force: bool) -> None:
    """Write vidscribe.yaml with defaults and create the tables."""
    config_path = ctx.obj["config_path"]
    settings = Settings()
    if database_url:
        settings.database.url = database_url

    if config_path.exists() and not force:
        log_warning(f"{config_path} already exists (use --force to overwrite)")
    else:
        write_yaml(config_path, settings.model_dump(mode="json"))
        log_success(f"Config: {config_path}")

    db = Database(settings.database.url)
    db.create_all()
    db.dispose()
    log_success(f"Database ready: {settings.database.url}")
    click.echo("\nNext: vidscribe add <video-id> --creator <id> --family <family> --reference <ref>")
