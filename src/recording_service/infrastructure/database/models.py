"""
Database Models

SQLAlchemy ORM models for recording metadata, consent, access audit and
recording preferences.
"""

from datetime import datetime
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    BigInteger,
    JSON,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()

# A recorder holds the ride's session until the recording reaches a terminal status
ACTIVE_STATUS_SQL = "status NOT IN ('completed', 'failed', 'deleted')"


class RecordingDB(Base):
    """Ride recording database model"""

    __tablename__ = "ride_recordings"

    id = Column(String(36), primary_key=True, index=True)
    ride_id = Column(String(100), nullable=False, index=True)
    user_id = Column(String(100), nullable=False, index=True)
    user_type = Column(String(20), nullable=False)
    recording_type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, index=True)
    retention_policy = Column(String(20), nullable=False, default="standard")

    # File information
    file_url = Column(Text, nullable=True)
    thumbnail_url = Column(Text, nullable=True)
    file_size = Column(BigInteger, nullable=True)
    duration_seconds = Column(Integer, nullable=True)
    format = Column(String(10), nullable=False)
    quality = Column(String(20), nullable=False, default="medium")
    encrypted = Column(Boolean, nullable=False, default=True)
    encryption_key_id = Column(String(255), nullable=True)

    # Upload tracking
    upload_id = Column(String(255), nullable=True)
    chunks_received = Column(Integer, nullable=False, default=0)
    total_chunks = Column(Integer, nullable=False, default=0)

    # Timestamps
    started_at = Column(DateTime, nullable=False)
    ended_at = Column(DateTime, nullable=True)
    uploaded_at = Column(DateTime, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Metadata
    device_info = Column(Text, nullable=True)
    start_location = Column(JSON, nullable=True)
    end_location = Column(JSON, nullable=True)

    version = Column(Integer, nullable=False, default=1)

    __table_args__ = (
        # At most one active session per (ride, recorder)
        Index(
            "uq_ride_recordings_active_session",
            "ride_id",
            "user_id",
            unique=True,
            postgresql_where=text(ACTIVE_STATUS_SQL),
            sqlite_where=text(ACTIVE_STATUS_SQL),
        ),
    )

    def __repr__(self):
        return f"<RecordingDB(id='{self.id}', ride_id='{self.ride_id}', status='{self.status}')>"


class ConsentDB(Base):
    """Recording consent database model"""

    __tablename__ = "recording_consents"

    id = Column(String(36), primary_key=True)
    ride_id = Column(String(100), nullable=False, index=True)
    user_id = Column(String(100), nullable=False)
    user_type = Column(String(20), nullable=False)
    consented = Column(Boolean, nullable=False)
    consented_at = Column(DateTime, nullable=False)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("ride_id", "user_id", name="uq_recording_consents_ride_user"),
    )


class AccessLogDB(Base):
    """Recording access audit database model (append-only)"""

    __tablename__ = "recording_access_logs"

    id = Column(String(36), primary_key=True)
    recording_id = Column(String(36), nullable=False, index=True)
    accessed_by = Column(String(100), nullable=False)
    access_type = Column(String(20), nullable=False)
    reason = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    accessed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


class RecordingSettingsDB(Base):
    """Per-user recording preferences database model"""

    __tablename__ = "recording_settings"

    user_id = Column(String(100), primary_key=True)
    recording_enabled = Column(Boolean, nullable=False, default=False)
    default_type = Column(String(20), nullable=False, default="audio")
    default_quality = Column(String(20), nullable=False, default="medium")
    auto_record_night_rides = Column(Boolean, nullable=False, default=False)
    auto_record_sos_rides = Column(Boolean, nullable=False, default=True)
    notify_on_recording = Column(Boolean, nullable=False, default=True)
    allow_driver_recording = Column(Boolean, nullable=False, default=True)
    allow_rider_recording = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)
