#!/usr/bin/env python
"""
Run the PDF render service with startup validation.
"""
import argparse
import os
import socket
import sys
from typing import Optional

import uvicorn
from loguru import logger

from core.config import Config
from backend.lib.logging_setup import setup_logging


def check_port_available(host: str, port: int) -> bool:
    """Check if a port is available."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(1)
            result = sock.connect_ex((host if host != '0.0.0.0' else '127.0.0.1', port))
            return result != 0  # Port is available if connection fails
    except Exception as e:
        logger.warning(f"Could not check port availability: {e}")
        return True  # Assume available if we can't check


def resolve_server_config(
    config: Config,
    override_host: Optional[str] = None,
    override_port: Optional[int] = None,
) -> dict:
    server_config = config.get_server_config()
    if override_host is not None:
        server_config['host'] = override_host
    if override_port is not None:
        server_config['port'] = override_port
    return server_config


def validate_startup(override_host: Optional[str] = None, override_port: Optional[int] = None) -> bool:
    """Validate that required services can be initialized."""
    try:
        logger.info("Validating render service startup...")

        config = Config()
        logger.info("✓ Config loaded successfully")

        server_config = resolve_server_config(config, override_host, override_port)
        logger.info(f"✓ Server config loaded: host={server_config['host']}, port={server_config['port']}")

        logger.info("Testing app initialization...")
        from backend.app.main import app  # noqa: F401
        logger.info("✓ App module imported successfully")

        port = server_config['port']
        host = server_config['host']
        if not check_port_available(host, port):
            logger.warning(f"⚠ Port {port} appears to be in use. Server may fail to start.")
            logger.warning(f"   Try stopping any existing server on port {port}")
        else:
            logger.info(f"✓ Port {port} is available")

        logger.info("✓ Startup validation complete")
        return True

    except Exception as e:
        logger.exception(f"✗ Startup validation failed: {e}")
        logger.error("Please check the error above and fix any configuration issues")
        return False


def _env_port() -> Optional[int]:
    env_port = os.environ.get("RENDER_PORT_OVERRIDE")
    if not env_port:
        return None
    try:
        return int(env_port)
    except ValueError:
        logger.warning(f"Ignoring invalid RENDER_PORT_OVERRIDE={env_port!r}")
        return None


def main(argv: Optional[list] = None) -> None:
    parser = argparse.ArgumentParser(description="Run the PDF render service")
    parser.add_argument("--host", type=str, help="Override host to bind")
    parser.add_argument("--port", type=int, help="Override port to bind")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    args = parser.parse_args(argv)

    override_host = args.host or os.environ.get("RENDER_HOST_OVERRIDE")
    override_port = args.port if args.port is not None else _env_port()

    # Configure logging (console + file + stdlib interception)
    setup_logging(enable_console=True, console_colorize=True)

    logger.info("=" * 60)
    logger.info("Starting PDF Render Service")
    logger.info("=" * 60)

    if not validate_startup(override_host=override_host, override_port=override_port):
        logger.error("Startup validation failed. Exiting.")
        sys.exit(1)

    try:
        server_config = resolve_server_config(Config(), override_host, override_port)
        reload = args.reload or server_config['reload']

        logger.info(f"Starting server on {server_config['host']}:{server_config['port']}")
        logger.info(f"Reload mode: {reload}")
        logger.info(f"Endpoint available at http://localhost:{server_config['port']}/api/generate-pdf")

        uvicorn.run(
            "backend.app.main:app",
            host=server_config['host'],
            port=server_config['port'],
            reload=reload,
            reload_dirs=server_config['reload_dirs'] if reload else None,
            log_level="info",
            log_config=None,  # Use our Loguru-based config
            access_log=True,
        )
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
    except Exception as e:
        logger.exception(f"Server failed to start: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
