"""Database layer"""

from .client import DatabaseClient, db_client
from .models import AccessLogDB, Base, ConsentDB, RecordingDB, RecordingSettingsDB
from .repository import RecordingRepository

__all__ = [
    "DatabaseClient",
    "db_client",
    "Base",
    "RecordingDB",
    "ConsentDB",
    "AccessLogDB",
    "RecordingSettingsDB",
    "RecordingRepository",
]
