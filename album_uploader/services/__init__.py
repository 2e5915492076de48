"""Services for album_uploader."""
from .api_client import HTTPAPIClient
from .compression import ImageCompressor, PreparedPayload
from .destination import HTTPDestinationStore
from .notifications import CollectingNotificationSink, LoggingNotificationSink
from .permissions import HTTPPermissionGuard
from .preview import PreviewHandle, PreviewManager

__all__ = [
    "HTTPAPIClient",
    "ImageCompressor",
    "PreparedPayload",
    "HTTPDestinationStore",
    "CollectingNotificationSink",
    "LoggingNotificationSink",
    "HTTPPermissionGuard",
    "PreviewHandle",
    "PreviewManager",
]
