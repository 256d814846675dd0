"""Server entry point — ``python -m modhealth.core.server.main``."""

from __future__ import annotations

import logging
from ipaddress import ip_address

from modhealth.core.config.settings import get_settings
from modhealth.core.server.app import SERVER_NAME, create_app


def _is_loopback_host(host: str) -> bool:
    if host in {"localhost"}:
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def run() -> None:
    """Start the MCP server with Streamable HTTP transport."""
    settings = get_settings()
    logging.basicConfig(level=getattr(logging, settings.mh_log_level.upper(), logging.INFO))

    logger = logging.getLogger(__name__)
    if not settings.mh_allow_insecure_bind and not _is_loopback_host(settings.mh_host):
        raise RuntimeError(
            "Refusing to bind to a non-loopback host without an auth layer. "
            "Set MH_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    logger.info("Starting %s server on %s:%d", SERVER_NAME, settings.mh_host, settings.mh_port)

    mcp = create_app()
    mcp.run(
        transport="streamable-http",
        host=settings.mh_host,
        port=settings.mh_port,
    )


if __name__ == "__main__":
    run()
