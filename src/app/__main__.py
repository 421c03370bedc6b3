"""Weather Aggregator Server - Entry point for the HTTP API."""

import logging
import sys

import click
import uvicorn
from dotenv import load_dotenv

from observability import init_tracing

from .config import MissingAPIKeyError, Settings
from .server import create_app


load_dotenv()

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@click.command()
@click.option('--host', 'host', default='localhost', help='Server host')
@click.option('--port', 'port', default=3000, help='Server port')
@click.option('--trace/--no-trace', 'trace', default=False, help='Export traces to Phoenix')
def main(host: str, port: int, trace: bool):
    """Starts the Weather Aggregator server."""
    try:
        settings = Settings.from_env()

        if trace:
            init_tracing()

        app = create_app(settings=settings)

        logger.info(f'Starting Weather Aggregator server at http://{host}:{port}')
        uvicorn.run(app, host=host, port=port)

    except MissingAPIKeyError as e:
        logger.error(f'Error: {e}')
        sys.exit(1)
    except Exception as e:
        logger.error(f'An error occurred during server startup: {e}')
        sys.exit(1)


if __name__ == '__main__':
    main()
