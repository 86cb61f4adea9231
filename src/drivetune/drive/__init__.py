"""Google Drive transport and file models.

The source itself lives in :mod:`drivetune.drive.source`.
"""

from drivetune.drive.client import DriveAPIError, DriveAuthError, DriveClient
from drivetune.drive.models import DriveFile, FilePage, OAuthToken
from drivetune.drive.reader import ResponseStream, StreamingReader

__all__ = [
    "DriveAPIError",
    "DriveAuthError",
    "DriveClient",
    "DriveFile",
    "FilePage",
    "OAuthToken",
    "ResponseStream",
    "StreamingReader",
]
