"""Dual logging utilities for Apple Mail MCP server."""

import logging

from mcp.server.fastmcp import Context

logger = logging.getLogger('mcp_apple_mail.tools')


class DualLogger:
    """Logs messages to both the server log and the MCP client context.

    Stdout carries the stdio transport, so the server side goes through
    ``logging`` (stderr) rather than print.
    """

    def __init__(self, ctx: Context | None):
        self.ctx = ctx

    async def info(self, msg: str):
        """Log info message to both the server log and MCP context."""
        logger.info(msg)
        if self.ctx is not None:
            await self.ctx.info(msg)

    async def debug(self, msg: str):
        """Log debug message to both the server log and MCP context."""
        logger.debug(msg)
        if self.ctx is not None:
            await self.ctx.debug(msg)

    async def warning(self, msg: str):
        """Log warning message to both the server log and MCP context."""
        logger.warning(msg)
        if self.ctx is not None:
            await self.ctx.warning(msg)

    async def error(self, msg: str):
        """Log error message to both the server log and MCP context."""
        logger.error(msg)
        if self.ctx is not None:
            await self.ctx.error(msg)
