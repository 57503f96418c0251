"""Typer-based admin command line for provisioning key store backends."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import boto3
import typer

from .config import AppConfig, load_config
from .ddb import AwsManager
from .exceptions import SchemaError
from .logging import configure_logging

app = typer.Typer(help="Key store administration")


@app.callback()
def main(ctx: typer.Context, config: Optional[Path] = typer.Option(None, "--config", metavar="PATH")) -> None:
    try:
        ctx.obj = load_config(config)
    except ValueError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2)
    configure_logging(ctx.obj.logging.normalized_level())


def _config(ctx: typer.Context) -> AppConfig:
    return ctx.obj


@app.command("init-dynamodb")
def init_dynamodb(
    ctx: typer.Context,
    endpoint_url: Optional[str] = typer.Option(None, "--endpoint-url", help="Override the DynamoDB endpoint"),
    region: Optional[str] = typer.Option(None, "--region", help="Override the AWS region"),
) -> None:
    """Create the key table, its indexes and TTL."""
    settings = _config(ctx).dynamodb
    client = boto3.client(
        "dynamodb",
        region_name=region or settings.region,
        endpoint_url=endpoint_url or settings.endpoint_url,
    )
    try:
        AwsManager(client, settings).create_table()
    except SchemaError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Created table {settings.table_name}")


@app.command("init-cassandra")
def init_cassandra(ctx: typer.Context) -> None:
    """Create the keyspace, tables and the owner lookup index."""
    from cassandra.cluster import Cluster, NoHostAvailable
    from cassandra.policies import DCAwareRoundRobinPolicy

    from .cql import CassandraSchemaManager

    settings = _config(ctx).cassandra
    cluster = Cluster(
        settings.contact_points,
        port=settings.port,
        load_balancing_policy=DCAwareRoundRobinPolicy(local_dc=settings.local_datacenter),
    )
    try:
        session = cluster.connect()
        CassandraSchemaManager(session, settings).create_schema()
    except (NoHostAvailable, SchemaError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1)
    finally:
        cluster.shutdown()
    typer.echo(f"Created keyspace {settings.keyspace}")


@app.command("show-config")
def show_config(ctx: typer.Context) -> None:
    typer.echo(_config(ctx).model_dump_json(indent=2))


@app.command()
def version() -> None:
    from .version import __version__

    typer.echo(__version__)


if __name__ == "__main__":  # pragma: no cover
    app()
