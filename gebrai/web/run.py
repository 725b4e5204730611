from pathlib import Path
from typing import Optional

import typer
import uvicorn
from loguru import logger

from gebrai.app import GeoGebraApp
from gebrai.config import GeoGebraServerConfig
from gebrai.log import LogSetup
from gebrai.web.rest_api import GeoGebraRestAPI

env_config = GeoGebraServerConfig()
app = typer.Typer()


def run_http_server(
    config: Optional[GeoGebraServerConfig] = None,
    host: str = "0.0.0.0",
    port: int = 3000,
    debug: bool = False,
) -> None:
    """
    Run the REST server in the foreground.

    Args:
        config: Server configuration, read from the environment when omitted
        host: Host to bind the server to
        port: Port to run the server on
        debug: Debug mode
    """
    config = config or GeoGebraServerConfig()
    api = GeoGebraRestAPI(geogebra=GeoGebraApp(config), debug=debug)
    logger.info("Starting HTTP server on {host}:{port}", host=host, port=port)
    uvicorn.run(api, host=host, port=port)


@app.command()
def run_http_command(
    host: str = typer.Option(env_config.host, help="Host to bind the server to"),
    port: int = typer.Option(env_config.port, help="Port to run the server on"),
    log_level: Optional[str] = typer.Option(None, help="Log level, overrides LOG_LEVEL"),
    env_file: Optional[Path] = typer.Option(None, help="Optional .env file loaded before reading the environment"),
    debug: bool = typer.Option(False, help="Debug mode"),
) -> None:
    """Run the GeoGebra REST server."""
    config = GeoGebraServerConfig.from_env(env_file)
    if log_level:
        config.log_level = log_level.upper()
    LogSetup.configure(config.log_dir, config.log_level, "both")
    run_http_server(config=config, host=host, port=port, debug=debug)


def run() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    run()
