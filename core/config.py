"""Configuration management for the report export pipeline and render service."""
import os
import yaml
from pathlib import Path
from typing import Any, List, Optional

from loguru import logger

DEFAULT_ENDPOINTS = [
    'http://localhost:3001/api/generate-pdf',
    '/api/generate-pdf',
]


def find_project_root(start_path: Path = None) -> Path:
    """Find the project root directory."""
    if start_path is None:
        start_path = Path(__file__).resolve()

    # Walk up the directory tree looking for project root markers
    current = start_path if start_path.is_dir() else start_path.parent

    while current.parent != current:
        if (current / 'config.yaml').exists():
            return current
        if (current / 'pyproject.toml').exists() and (current / 'exporter').exists():
            return current
        current = current.parent

    # If no marker found, return current path
    return start_path.parent


class Config:
    """Load and manage configuration from YAML file."""

    def __init__(self, config_path: str = "config.yaml"):
        """Initialize configuration."""
        # If path is relative, find it relative to project root
        if not Path(config_path).is_absolute():
            project_root = find_project_root()
            config_path = project_root / config_path

        self.config_path = Path(config_path)
        if not self.config_path.exists():
            logger.warning(f"Config file not found at {self.config_path}; using defaults")
            self.config = {}
            return

        with open(self.config_path, 'r', encoding='utf-8') as f:
            self.config = yaml.safe_load(f) or {}

    def get(self, key_path: str, default: Optional[Any] = None) -> Any:
        """
        Get config value using dot notation.

        Args:
            key_path: Dot-separated key path (e.g., 'render.canvas_poll.max_attempts')
            default: Default value if not found

        Returns:
            Config value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if value is None:
                return default
            if isinstance(value, dict):
                value = value.get(key, default)
            else:
                return default

        return value

    def get_int(self, key_path: str, default: int) -> int:
        """Get an int value with fallback."""
        try:
            val = self.get(key_path, default)
            return int(val) if val is not None else int(default)
        except Exception:
            return int(default)

    def get_float(self, key_path: str, default: float) -> float:
        """Get a float value with fallback."""
        try:
            val = self.get(key_path, default)
            return float(val) if val is not None else float(default)
        except Exception:
            return float(default)

    def get_bool(self, key_path: str, default: bool) -> bool:
        """Get a boolean value with common string conversions."""
        try:
            val = self.get(key_path, default)
            if isinstance(val, bool):
                return val
            if isinstance(val, str):
                return val.lower() in ("1", "true", "yes", "on")
            return bool(val)
        except Exception:
            return bool(default)

    def get_server_config(self) -> dict:
        """
        Get render service server configuration.

        Returns:
            Configuration dict with host, port, reload, and reload_dirs
        """
        return {
            'host': self.get('servers.render.host', '0.0.0.0'),
            'port': self.get_int('servers.render.port', 3001),
            'reload': self.get_bool('servers.render.reload', False),
            'reload_dirs': self.get('servers.render.reload_dirs', ['backend/app']),
        }

    def get_cors_config(self) -> dict:
        """
        Get CORS configuration.

        Returns:
            Configuration dict with allowed_origins, allow_credentials, allow_methods, and allow_headers
        """
        return {
            'allowed_origins': self.get('servers.cors.allowed_origins', ['*']),
            'allow_credentials': self.get_bool('servers.cors.allow_credentials', False),
            'allow_methods': self.get('servers.cors.allow_methods', ['*']),
            'allow_headers': self.get('servers.cors.allow_headers', ['*']),
        }

    def get_render_config(self) -> dict:
        """
        Get headless renderer configuration.

        Returns:
            Dict with viewport, timeouts, canvas poll budget and default PDF options
        """
        return {
            'headless': self.get_bool('render.headless', True),
            'viewport': {
                'width': self.get_int('render.viewport.width', 1200),
                'height': self.get_int('render.viewport.height', 1600),
            },
            'device_scale_factor': self.get_float('render.viewport.device_scale_factor', 2),
            'navigation_timeout_ms': self.get_int('render.navigation_timeout_ms', 30000),
            'settle_ms': self.get_int('render.settle_ms', 2000),
            'canvas_poll': {
                'initial_delay_ms': self.get_int('render.canvas_poll.initial_delay_ms', 500),
                'interval_ms': self.get_int('render.canvas_poll.interval_ms', 100),
                'max_attempts': self.get_int('render.canvas_poll.max_attempts', 20),
            },
            'max_body_bytes': self.get_int('render.max_body_bytes', 50 * 1024 * 1024),
            'default_options': self.get('render.default_options', {}) or {},
        }

    def get_export_endpoints(self) -> List[str]:
        """
        Get the ordered list of render endpoint candidates.

        ``PDF_EXPORT_ENDPOINTS`` (comma separated) takes precedence over the file.
        """
        env_value = os.environ.get('PDF_EXPORT_ENDPOINTS', '').strip()
        if env_value:
            return [item.strip() for item in env_value.split(',') if item.strip()]

        endpoints = self.get('export.endpoints', DEFAULT_ENDPOINTS)
        if isinstance(endpoints, str):
            endpoints = [endpoints]
        return [str(item).strip() for item in endpoints or [] if str(item).strip()]

    def get_export_config(self) -> dict:
        """
        Get client-side export configuration.

        Returns:
            Dict with endpoints, request timeout, content ids, font url and downloads dir
        """
        timeout = self.get('export.request_timeout', None)
        return {
            'endpoints': self.get_export_endpoints(),
            'request_timeout': float(timeout) if timeout is not None else None,
            'content_id': self.get('export.content_id', 'category-report-content'),
            'fallback_ids': self.get('export.fallback_ids', ['pdf-pages-only', 'category-report-content']),
            'font_url': self.get(
                'export.font_url',
                'https://fonts.googleapis.com/css2?family=Roboto:wght@300;400;500;600;700&display=swap',
            ),
            'downloads_dir': self.get_downloads_dir(),
        }

    def get_downloads_dir(self) -> Path:
        """
        Get the directory where exported PDFs are saved.

        Returns:
            Path object pointing to downloads directory
        """
        downloads_dir = Path(self.get('export.downloads_dir', 'data/exports'))
        if downloads_dir.is_absolute():
            return downloads_dir
        return find_project_root() / downloads_dir
