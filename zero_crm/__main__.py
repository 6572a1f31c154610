"""Entry point: ``python -m zero_crm`` serves the MCP tools over stdio."""

import logging
import sys

from .config import Config
from .tool_definitions import mcp

logger = logging.getLogger("zero_crm")


def main() -> None:
    config = Config.from_env()
    # stdout carries the MCP protocol; logs go to stderr
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    missing = config.validate()
    if missing:
        logger.error("Missing required settings: %s", ", ".join(missing))
        sys.exit(1)

    logger.info("Starting Zero CRM MCP server against %s", config.api_url)
    mcp.run()


if __name__ == "__main__":
    main()
