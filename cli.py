"""Command-line entry point: ``universal-proxy [--plain | --config | --help]``."""

import sys
from datetime import datetime

import uvicorn
from rich.console import Console

from app import create_app
from core.config import CONFIG_FILE, Config, load_config
from ui.dashboard import ConsoleLogger, Dashboard
from ui.log_utils import clear_logs, write_cli_log

console = Console()

HELP = """
[bold cyan]Universal Proxy[/bold cyan]

Forwards any request to the http(s) URL embedded in its path, with permissive CORS.

[bold]Usage:[/bold]
    universal-proxy              Start with live dashboard
    universal-proxy --plain      Start with one log line per request
    universal-proxy --config     Show config location
    universal-proxy --help       Show this help

[bold]Example:[/bold]
    curl http://127.0.0.1:8080/api/proxy/https://api.example.com/v1/items
"""


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    option = args[0] if args else None

    if option == "--config":
        console.print(f"[bold]Config:[/bold] {CONFIG_FILE}")
        return
    if option in ("--help", "-h"):
        console.print(HELP)
        return
    if option not in (None, "--plain"):
        console.print(f"[red]Unknown option:[/red] {option}")
        console.print(HELP)
        sys.exit(2)

    serve(load_config(), plain=option == "--plain")


def serve(config: Config, *, plain: bool = False) -> None:
    """Run the proxy until interrupted, reporting through the dashboard or plain lines."""
    clear_logs()
    dashboard = None if plain else Dashboard(config)
    logger = dashboard or ConsoleLogger()

    server = uvicorn.Server(
        uvicorn.Config(
            create_app(config, logger),
            host=config.proxy.host,
            port=config.proxy.port,
            log_level="warning",
            timeout_keep_alive=config.limits.keep_alive_timeout,
        )
    )

    listening = f"http://{config.proxy.host}:{config.proxy.port}{config.proxy.prefix}/"
    if dashboard:
        dashboard.start()
    else:
        console.print(f"[bold cyan]Universal Proxy[/bold cyan] listening on {listening}")

    started = datetime.now()
    write_cli_log("STARTUP", "Proxy started", url=listening)
    try:
        server.run()
    finally:
        write_cli_log("SHUTDOWN", "Proxy stopped", uptime=str(datetime.now() - started))
        if dashboard:
            dashboard.stop()


if __name__ == "__main__":
    main()
