from __future__ import annotations
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, JSON, Text, Boolean, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from error_alerting.infrastructure.db import Base
from error_alerting.alerting.types import Channel


class ErrorLog(Base):
    """Append-only record of one error occurrence (the error event store)."""
    __tablename__ = "error_logs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True)
    error_type: Mapped[str] = mapped_column(String(32), index=True)
    error_code: Mapped[str | None] = mapped_column(String(64), default=None)
    path: Mapped[str] = mapped_column(String(512), default="")
    message: Mapped[str | None] = mapped_column(Text, default=None)
    stack_trace: Mapped[str | None] = mapped_column(Text, default=None)
    user_agent: Mapped[str | None] = mapped_column(String(512), default=None)
    ip_address: Mapped[str | None] = mapped_column(String(64), default=None)
    meta: Mapped[dict | None] = mapped_column("metadata", JSON, default=None)
    occurred_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    __table_args__ = (
        # window count: owner + type + time range
        Index("ix_error_log_owner_type_ts", "owner_id", "error_type", "occurred_at"),
    )


class ErrorAlertRule(Base):
    """User-owned alert rule: fire when threshold_count errors of a monitored type
    land within window_minutes.

    monitored_types: JSON list of error type values, e.g. ["404", "api_error"].
    channels: JSON like {"in_app": true, "email": false}
    cooldown_minutes: minimum minutes between firings; NULL reuses window_minutes.
    last_triggered_at: written only through the conditional claim in CooldownGate.
    """
    __tablename__ = "error_alert_rules"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True)
    name: Mapped[str] = mapped_column(String(128))
    monitored_types: Mapped[list] = mapped_column(JSON, default=list)
    threshold_count: Mapped[int] = mapped_column(Integer, default=10)
    window_minutes: Mapped[int] = mapped_column(Integer, default=60)
    cooldown_minutes: Mapped[int | None] = mapped_column(Integer, default=None)
    severity: Mapped[str] = mapped_column(String(16), default="error")
    channels: Mapped[dict] = mapped_column(JSON, default=lambda: {"in_app": True, "email": False})
    recipient_email: Mapped[str | None] = mapped_column(String(256), default=None)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    last_triggered_at: Mapped[datetime | None] = mapped_column(DateTime, default=None, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    __table_args__ = (
        Index("ix_error_alert_rule_owner_enabled", "owner_id", "enabled"),
        CheckConstraint("threshold_count >= 1", name="ck_error_alert_rule_threshold"),
        CheckConstraint("window_minutes >= 1", name="ck_error_alert_rule_window"),
    )

    def has_channel(self, channel: Channel) -> bool:
        return bool((self.channels or {}).get(channel.value))

    def __repr__(self) -> str:
        return f"ErrorAlertRule(id={self.id!r}, name={self.name!r}, owner_id={self.owner_id!r})"


class ErrorNotification(Base):
    """In-app inbox entry; at most one per (rule, triggering event)."""
    __tablename__ = "error_notifications"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), index=True)
    rule_id: Mapped[int] = mapped_column(Integer, index=True)
    source_event_id: Mapped[int] = mapped_column(Integer, index=True)
    title: Mapped[str] = mapped_column(String(256))
    message: Mapped[str] = mapped_column(String(1024))
    severity: Mapped[str] = mapped_column(String(16))
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    read_at: Mapped[datetime | None] = mapped_column(DateTime, default=None)
    __table_args__ = (
        UniqueConstraint("rule_id", "source_event_id", name="uq_error_notification_rule_event"),
        Index("ix_error_notification_owner_created", "owner_id", "created_at"),
    )
