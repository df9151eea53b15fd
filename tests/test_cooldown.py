"""Tests for CooldownGate: suppression window and the conditional claim."""

import threading
from datetime import timedelta

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from error_alerting.alerting.cooldown import CooldownGate, cooldown_for
from error_alerting.alerting.matcher import RuleMatcher
from error_alerting.alerting.types import ErrorType
from error_alerting.infrastructure.db import Base
from error_alerting.models.tables import ErrorAlertRule

from helpers import NOW, OWNER


class TestIsSuppressed:
    def test_never_triggered_is_not_suppressed(self, make_rule):
        assert CooldownGate().is_suppressed(make_rule(), NOW) is False

    def test_suppressed_until_window_elapses(self, make_rule):
        rule = make_rule(window_minutes=60, last_triggered_at=NOW)
        gate = CooldownGate()
        assert gate.is_suppressed(rule, NOW + timedelta(minutes=5)) is True
        assert gate.is_suppressed(rule, NOW + timedelta(minutes=59, seconds=59)) is True
        assert gate.is_suppressed(rule, NOW + timedelta(minutes=60)) is False
        assert gate.is_suppressed(rule, NOW + timedelta(minutes=61)) is False

    def test_explicit_cooldown_overrides_window(self, make_rule):
        rule = make_rule(window_minutes=60, cooldown_minutes=10, last_triggered_at=NOW)
        assert cooldown_for(rule) == timedelta(minutes=10)
        assert CooldownGate().is_suppressed(rule, NOW + timedelta(minutes=11)) is False


class TestTryClaim:
    def test_first_claim_sets_last_triggered(self, make_rule, reload_rule):
        rule = make_rule()
        assert CooldownGate().try_claim(rule, NOW) is True
        assert rule.last_triggered_at == NOW
        assert reload_rule(rule.id).last_triggered_at == NOW

    def test_claim_inside_cooldown_fails_and_leaves_state(self, make_rule, reload_rule):
        rule = make_rule(last_triggered_at=NOW)
        later = NOW + timedelta(minutes=5)
        assert CooldownGate().try_claim(rule, later) is False
        assert reload_rule(rule.id).last_triggered_at == NOW

    def test_claim_after_cooldown_succeeds(self, make_rule, reload_rule):
        rule = make_rule(last_triggered_at=NOW)
        later = NOW + timedelta(minutes=61)
        assert CooldownGate().try_claim(rule, later) is True
        assert reload_rule(rule.id).last_triggered_at == later

    def test_disabled_rule_cannot_be_claimed(self, make_rule):
        rule = make_rule(enabled=False)
        assert CooldownGate().try_claim(rule, NOW) is False

    def test_stale_readers_race_exactly_one_wins(self, make_rule, reload_rule):
        make_rule()
        # both evaluators read the rule before either claims
        seen_by_a = RuleMatcher().match(ErrorType.API_ERROR, owner_id=OWNER)[0]
        seen_by_b = RuleMatcher().match(ErrorType.API_ERROR, owner_id=OWNER)[0]
        gate = CooldownGate()

        results = [gate.try_claim(seen_by_a, NOW), gate.try_claim(seen_by_b, NOW)]

        assert results == [True, False]
        assert reload_rule(seen_by_a.id).last_triggered_at == NOW


def test_threaded_claims_on_shared_database(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'race.db'}", connect_args={"check_same_thread": False, "timeout": 30})
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    with factory() as session:
        session.add(ErrorAlertRule(owner_id=OWNER, name="race", monitored_types=["api_error"], threshold_count=1, window_minutes=60))
        session.commit()

    snapshots = [RuleMatcher(factory).match(ErrorType.API_ERROR)[0] for _ in range(4)]
    gate = CooldownGate(factory)
    barrier = threading.Barrier(len(snapshots))
    results = []
    lock = threading.Lock()

    def claim(rule):
        barrier.wait()
        won = gate.try_claim(rule, NOW)
        with lock:
            results.append(won)

    threads = [threading.Thread(target=claim, args=(r,)) for r in snapshots]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    engine.dispose()

    assert sorted(results) == [False, False, False, True]
