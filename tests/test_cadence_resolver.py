"""Tests for relationship classification and the cadence resolver."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from app.services.engagement.cadence_resolver import (
    CadenceResolver,
    CadenceRule,
    get_resolver,
    has_responded,
)
from app.services.engagement.classification import (
    PURPOSE_GENERAL_CHECK_IN,
    PURPOSE_PERIODIC_CHECK_IN,
    PURPOSE_REFERRAL_NO_CONTACT,
    PURPOSE_UNRESPONSIVE,
    CounterpartyAwareness,
    RecencyBucket,
    RelationshipClassification,
    RelationshipNature,
    all_classifications,
)
from app.services.engagement.errors import ConfigurationError
from tests.cadence_tables import full_cadence_table

REFERRAL_RECENT_AWARE = RelationshipClassification(
    RelationshipNature.REFERRAL, RecencyBucket.RECENT, CounterpartyAwareness.AWARE
)

T0 = datetime(2024, 2, 19, 15, 0, tzinfo=UTC)
T1 = datetime(2024, 2, 20, 15, 0, tzinfo=UTC)


class TestClassification:
    def test_from_values_normalizes_case(self) -> None:
        c = RelationshipClassification.from_values("Referral", " recent", "AWARE")
        assert c == REFERRAL_RECENT_AWARE
        assert str(c) == "referral/recent/aware"

    def test_from_values_rejects_unknown(self) -> None:
        with pytest.raises(ConfigurationError, match="nature"):
            RelationshipClassification.from_values("martian", "recent", "aware")

    def test_from_values_rejects_missing(self) -> None:
        with pytest.raises(ConfigurationError, match="recency"):
            RelationshipClassification.from_values("referral", None, "aware")

    def test_all_classifications_is_full_product(self) -> None:
        triples = all_classifications()
        assert len(triples) == 6 * 4 * 3
        assert len(set(triples)) == len(triples)


class TestHasResponded:
    def test_no_response(self) -> None:
        assert has_responded(T0, None) is False

    def test_response_after_touch(self) -> None:
        assert has_responded(T0, T1) is True

    def test_touch_after_response(self) -> None:
        assert has_responded(T1, T0) is False

    def test_response_without_touch(self) -> None:
        assert has_responded(None, T0) is True

    def test_naive_and_aware_compare(self) -> None:
        assert has_responded(T0, datetime(2024, 2, 20, 15, 0)) is True


class TestCadenceResolver:
    def test_every_classification_resolves(self, resolver: CadenceResolver) -> None:
        """A total table gives a decision for all 72 triples."""
        assert len(resolver) == 72
        for classification in all_classifications():
            assert resolver.resolve(classification).cadence_days == 7

    def test_missing_rule_raises_configuration_error(self) -> None:
        resolver = CadenceResolver({REFERRAL_RECENT_AWARE: CadenceRule(7)})
        other = RelationshipClassification(
            RelationshipNature.FRIEND, RecencyBucket.NEW, CounterpartyAwareness.FAMILIAR
        )
        with pytest.raises(ConfigurationError, match="friend/new/familiar"):
            resolver.resolve(other)

    def test_response_can_only_shorten(self) -> None:
        """min(cadence, responded cadence) is used after a response."""
        shorter = CadenceResolver({REFERRAL_RECENT_AWARE: CadenceRule(30, 10)})
        longer = CadenceResolver({REFERRAL_RECENT_AWARE: CadenceRule(7, 14)})
        assert (
            shorter.resolve(REFERRAL_RECENT_AWARE, last_contacted_at=T0, last_responded_at=T1)
            .cadence_days
            == 10
        )
        assert (
            longer.resolve(REFERRAL_RECENT_AWARE, last_contacted_at=T0, last_responded_at=T1)
            .cadence_days
            == 7
        )

    def test_response_cadence_ignored_without_response(self) -> None:
        resolver = CadenceResolver({REFERRAL_RECENT_AWARE: CadenceRule(30, 10)})
        decision = resolver.resolve(REFERRAL_RECENT_AWARE, last_contacted_at=T1, last_responded_at=T0)
        assert decision.cadence_days == 30
        assert decision.responded is False

    def test_default_purposes(self) -> None:
        resolver = CadenceResolver({REFERRAL_RECENT_AWARE: CadenceRule(7)})
        assert resolver.resolve(REFERRAL_RECENT_AWARE).purpose == PURPOSE_GENERAL_CHECK_IN
        assert (
            resolver.resolve(REFERRAL_RECENT_AWARE, last_contacted_at=T0).purpose
            == PURPOSE_UNRESPONSIVE
        )
        assert (
            resolver.resolve(
                REFERRAL_RECENT_AWARE, last_contacted_at=T0, last_responded_at=T1
            ).purpose
            == PURPOSE_PERIODIC_CHECK_IN
        )

    def test_rule_purpose_wins(self) -> None:
        table = full_cadence_table(
            7,
            overrides={
                ("referral", "recent", "aware"): {"purpose": PURPOSE_REFERRAL_NO_CONTACT},
            },
        )
        resolver = CadenceResolver.from_table(table)
        decision = resolver.resolve(REFERRAL_RECENT_AWARE, last_contacted_at=T0)
        assert decision.purpose == PURPOSE_REFERRAL_NO_CONTACT

    def test_resolver_is_deterministic(self, resolver: CadenceResolver) -> None:
        a = resolver.resolve(REFERRAL_RECENT_AWARE, last_contacted_at=T0)
        b = resolver.resolve(REFERRAL_RECENT_AWARE, last_contacted_at=T0)
        assert a == b


class TestGetResolver:
    def test_unconfigured_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            get_resolver()

    def test_missing_file_raises_configuration_error(self, tmp_path, monkeypatch) -> None:
        from app.config import get_settings

        monkeypatch.setenv("CADENCE_TABLE_PATH", str(tmp_path / "missing.yaml"))
        get_settings.cache_clear()
        with pytest.raises(ConfigurationError, match="not found"):
            get_resolver()

    def test_configured_table(self, cadence_table_file) -> None:
        resolver = get_resolver()
        assert len(resolver) == 72
        assert get_resolver() is resolver
