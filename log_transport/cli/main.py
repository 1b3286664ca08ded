from typing import Optional

import typer
from rich.console import Console
from rich.syntax import Syntax

from log_transport.exception.exceptions import ConfigError
from log_transport.logging_conf import setup_logging
from log_transport.schema import create_table_ddl
from log_transport.transport.config import TransportConfig
from log_transport.transport.factory import TransportFactory

app = typer.Typer(help="SQL log transport CLI - table DDL and test writes")
console = Console()


def _parse_meta(pairs: list[str]) -> dict[str, str]:
    meta = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got: {pair}", param_hint="--meta")
        meta[key] = value
    return meta


@app.command()
def ddl(
    table: str = typer.Option(..., "--table", "-t", help="Log table name"),
    database: str = typer.Option(..., "--database", "-d", help="Database/schema name"),
    dialect: str = typer.Option("hana", "--dialect", help="SQL dialect to compile for"),
    level_field: Optional[str] = typer.Option(None, "--level-field"),
    meta_field: Optional[str] = typer.Option(None, "--meta-field"),
    message_field: Optional[str] = typer.Option(None, "--message-field"),
    timestamp_field: Optional[str] = typer.Option(None, "--timestamp-field"),
) -> None:
    """Print the recommended CREATE TABLE statement for the log table."""
    try:
        config = TransportConfig.from_options(
            {
                # Placeholder credentials, nothing connects
                "server_node": "localhost",
                "user": "ddl",
                "password": "ddl",
                "dialect": dialect,
                "database": database,
                "table": table,
                "fields": {
                    "level": level_field,
                    "meta": meta_field,
                    "message": message_field,
                    "timestamp": timestamp_field,
                },
            }
        )
        statement = create_table_ddl(config, dialect)
    except (ConfigError, ValueError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(code=1)
    console.print(Syntax(statement, "sql", word_wrap=True))


@app.command()
def send(
    message: str = typer.Option(..., "--message", "-m", help="Log message"),
    level: str = typer.Option("info", "--level", "-l", help="Log level"),
    meta: list[str] = typer.Option([], "--meta", help="Metadata as key=value, repeatable"),
    env_state: Optional[str] = typer.Option(
        None, "--env", "-e", help="Settings environment: dev, test or prod"
    ),
    timeout: float = typer.Option(30.0, "--timeout", help="Seconds to wait for the write"),
) -> None:
    """Write one log record using the environment settings."""
    setup_logging("WARNING", console=console)
    record = {"level": level, "message": message, **_parse_meta(meta)}

    try:
        transport = TransportFactory.create_transport(env_state)
    except (ConfigError, ValueError) as e:
        console.print(f"[red]Invalid configuration:[/red] {e}")
        raise typer.Exit(code=1)

    outcome = {}

    def on_done(error, success):
        outcome["error"] = error
        outcome["success"] = success

    with console.status(f"[cyan]Writing to {transport.config.database}.{transport.config.table}..."):
        transport.log(record, on_done)
        finished = transport.flush(timeout)
    if finished:
        transport.close()
        if hasattr(transport.pool, "dispose"):
            transport.pool.dispose()

    if not outcome and transport.config.level and transport.config.level != level:
        console.print(
            f"[yellow]Skipped: level '{level}' does not match filter '{transport.config.level}'[/yellow]"
        )
        return
    if not finished or not outcome:
        console.print(f"[red]Write did not finish within {timeout}s[/red]")
        raise typer.Exit(code=1)
    if outcome["error"] is not None:
        console.print(f"[red]✗ {outcome['error'].error_type}:[/red] {outcome['error']}")
        raise typer.Exit(code=1)
    console.print("[green]✓ Logged[/green]")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
