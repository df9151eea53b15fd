"""Shared fixtures: in-memory SQLite store, rule/error factories, fake email delivery."""

import os

# must be set before error_alerting.infrastructure.db builds its engine
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["APP_ENV"] = "test"
for _var in ("SMTP_HOST", "EMAIL_FROM", "EMAIL_RECIPIENTS", "ENVIRONMENT", "ALERT_EVAL_INLINE"):
    os.environ.pop(_var, None)

from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from error_alerting.config import reset_settings
from error_alerting.infrastructure import db
from error_alerting.infrastructure.db import Base
from error_alerting.models.tables import ErrorAlertRule, ErrorLog, ErrorNotification
from error_alerting.alerting.types import ErrorType
from error_alerting.alerting.evaluator import TriggerEvaluator
from error_alerting.alerting.dispatcher import NotificationDispatcher
from error_alerting.alerting.engine import AlertEngine

from helpers import NOW, OWNER, FakeEmailDelivery


@pytest.fixture(autouse=True)
def db_engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    Base.metadata.create_all(engine)
    db.override_engine(engine)
    reset_settings()
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()
    reset_settings()


@pytest.fixture
def make_rule():
    def _make(**overrides):
        fields = dict(
            owner_id=OWNER,
            name="API errors",
            monitored_types=[ErrorType.API_ERROR.value],
            threshold_count=10,
            window_minutes=60,
            severity="error",
            channels={"in_app": True, "email": False},
            enabled=True,
        )
        fields.update(overrides)
        with db.new_session() as session:
            rule = ErrorAlertRule(**fields)
            session.add(rule)
            session.commit()
            return rule
    return _make


@pytest.fixture
def add_errors():
    """Insert ``count`` errors ending at ``at``, one second apart going back in time."""
    def _add(count, at=NOW, error_type=ErrorType.API_ERROR, owner_id=OWNER, spacing=timedelta(seconds=1)):
        with db.new_session() as session:
            rows = [
                ErrorLog(owner_id=owner_id, error_type=ErrorType(error_type).value, path="/api/things", occurred_at=at - spacing * i)
                for i in range(count)
            ]
            session.add_all(rows)
            session.commit()
            return [r.id for r in rows]
    return _add


@pytest.fixture
def reload_rule():
    def _reload(rule_id):
        with db.new_session() as session:
            return session.get(ErrorAlertRule, rule_id)
    return _reload


@pytest.fixture
def notifications():
    def _all():
        with db.new_session() as session:
            return session.query(ErrorNotification).order_by(ErrorNotification.id).all()
    return _all


@pytest.fixture
def fake_email():
    return FakeEmailDelivery()


@pytest.fixture
def alert_engine(fake_email):
    dispatcher = NotificationDispatcher(email_delivery=fake_email, default_recipients=["ops@example.com"], subject_prefix="[Error Alert]")
    return AlertEngine(TriggerEvaluator(), dispatcher, clock=lambda: NOW)
