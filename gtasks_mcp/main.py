import logging
import sys

from gtasks_mcp.config import get_settings
from gtasks_mcp.mcp_server import build_server
from gtasks_mcp.tools import create_context

logger = logging.getLogger(__name__)


def run():
    settings = get_settings()
    # stdout carries the MCP stream, so all logging goes to stderr
    logging.basicConfig(
        level=settings.log_level.upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx = create_context(settings)
    mcp = build_server(ctx)
    logger.info("Google Tasks MCP server running on stdio")
    try:
        mcp.run(transport="stdio")
    except Exception:
        logger.exception("Fatal error in run()")
        sys.exit(1)
    finally:
        ctx.flow.stop()


if __name__ == "__main__":
    run()
