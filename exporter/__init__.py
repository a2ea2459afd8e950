"""Report PDF export pipeline.

Snapshots the report root of a page, sends it to the headless render
service and saves the PDF, or falls back to the browser's print dialog.
"""

from exporter.errors import (
    ContentNotFoundError,
    ExportError,
    ExportFailedError,
    PopupBlocked,
    RenderUnavailable,
    ServiceError,
    StyleSheetAccessError,
)
from exporter.models import ExportOutcome, ExportState, Margin, RenderOptions, RenderRequest
from exporter.pipeline import ExportPipeline
from exporter.render_client import DirectoryDownloadHost, RemoteRenderClient

__all__ = [
    'ContentNotFoundError',
    'DirectoryDownloadHost',
    'ExportError',
    'ExportFailedError',
    'ExportOutcome',
    'ExportPipeline',
    'ExportState',
    'Margin',
    'PopupBlocked',
    'RemoteRenderClient',
    'RenderOptions',
    'RenderRequest',
    'RenderUnavailable',
    'ServiceError',
    'StyleSheetAccessError',
]

__version__ = '0.1.0'
