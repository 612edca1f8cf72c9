import enum
import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Enum,
    Index,
    Integer,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class PushStatus(str, enum.Enum):
    active = "active"
    renewing = "renewing"
    expiring = "expiring"
    failed = "failed"


class ProcessingStatus(str, enum.Enum):
    received = "received"
    completed = "completed"
    failed = "failed"


class Vispark(Base):
    __tablename__ = "visparks"
    __table_args__ = (Index("ix_visparks_user_video", "user_id", "video_id"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    video_id: Mapped[str] = mapped_column(Text, nullable=False)
    video_channel_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    summaries: Mapped[list] = mapped_column(JSONB, default=list)
    video_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_channel_title: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_thumbnails: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    video_published_at: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_duration: Mapped[str | None] = mapped_column(Text, nullable=True)
    video_default_language: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())

    @property
    def metadata_dict(self) -> dict:
        return {
            "videoId": self.video_id,
            "channelId": self.video_channel_id,
            "title": self.video_title,
            "description": self.video_description,
            "channelTitle": self.video_channel_title,
            "thumbnails": self.video_thumbnails,
            "publishedAt": self.video_published_at,
            "duration": self.video_duration,
            "defaultLanguage": self.video_default_language,
        }


class VideoNotification(Base):
    __tablename__ = "video_notifications"
    __table_args__ = (
        UniqueConstraint("user_id", "video_id", name="uq_video_notification_user_video"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    video_id: Mapped[str] = mapped_column(Text, nullable=False)
    channel_id: Mapped[str] = mapped_column(Text, nullable=False)
    video_title: Mapped[str] = mapped_column(Text, nullable=False)
    video_url: Mapped[str] = mapped_column(Text, nullable=False)
    published_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    summary_generated: Mapped[bool] = mapped_column(Boolean, default=False)
    notification_sent: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


class ChannelSubscription(Base):
    __tablename__ = "channels"
    __table_args__ = (UniqueConstraint("user_id", "channel_id", name="uq_channel_user_channel"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    channel_id: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())


class PushSubscription(Base):
    __tablename__ = "youtube_push_subscriptions"
    __table_args__ = (
        UniqueConstraint("user_id", "channel_id", name="uq_push_subscription_user_channel"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    channel_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    subscription_id: Mapped[str] = mapped_column(Text, nullable=False)
    hub_secret: Mapped[str] = mapped_column(Text, nullable=False)
    lease_seconds: Mapped[int] = mapped_column(Integer, default=864000)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    status: Mapped[PushStatus] = mapped_column(Enum(PushStatus), default=PushStatus.active)
    retry_count: Mapped[int] = mapped_column(Integer, default=0)
    last_retry_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    renewal_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    auto_renewal_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    expires_at_buffer_days: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now()
    )


class PushCallbackLog(Base):
    __tablename__ = "youtube_push_callback_logs"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    channel_id: Mapped[str] = mapped_column(Text, nullable=False)
    video_id: Mapped[str] = mapped_column(Text, nullable=False)
    video_title: Mapped[str] = mapped_column(Text, nullable=False)
    processing_status: Mapped[ProcessingStatus] = mapped_column(
        Enum(ProcessingStatus), default=ProcessingStatus.received
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now())
