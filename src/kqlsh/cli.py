"""kqlsh command-line entry point.

Usage:
    kqlsh                                   Start the interactive shell
    kqlsh -b kafka:29092 -z zk:2181         Connect to specific hosts
    kqlsh -e "ktopics" -e "kpartitions quotes"
                                            Run commands and exit
    kqlsh --debug                           Log at DEBUG, with tracebacks

Entry point configured in pyproject.toml as 'kqlsh'.
"""

from typing import List, Optional

import typer

from kqlsh.common.config import config
from kqlsh.common.logging import configure_logging
from kqlsh.shell import Shell

app = typer.Typer(
    name="kqlsh",
    help="Interactive console for querying Kafka topics and browsing ZooKeeper.",
    add_completion=False,
)


@app.command()
def run(
    bootstrap_servers: Optional[str] = typer.Option(
        None, "--bootstrap-servers", "-b", help="Kafka bootstrap servers (default: KQLSH_KAFKA_BOOTSTRAP_SERVERS)",
    ),
    zookeeper_hosts: Optional[str] = typer.Option(
        None, "--zookeeper", "-z", help="ZooKeeper connect string (default: KQLSH_ZOOKEEPER_HOSTS)",
    ),
    execute: Optional[List[str]] = typer.Option(
        None, "--execute", "-e", help="Run a command and exit (repeatable)",
    ),
    debug: bool = typer.Option(False, "--debug", help="Log at DEBUG level and show tracebacks"),
):
    """
    Start kqlsh.

    Examples:
        kqlsh -b localhost:9092
        kqlsh -e "select symbol, price from quotes where price > 100 limit 5"
    """
    configure_logging(
        json_output=config.observability.json_logs,
        log_level="DEBUG" if debug else config.observability.log_level,
    )

    shell = Shell.create(bootstrap_servers=bootstrap_servers, zookeeper_hosts=zookeeper_hosts, debug=debug)

    if execute:
        try:
            failed = sum(1 for line in execute if not shell.execute(line))
        finally:
            shell.close()
        raise typer.Exit(1 if failed else 0)

    shell.run()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
