"""Tests for courier.routing.matching: how each exchange type decides which queues get a message."""

import pytest
from pydantic import ValidationError

from courier.connector.rabbitmq.models import RoutingDefaults, Topology
from courier.routing.matching import (
    DirectCriterion,
    FanoutCriterion,
    HeadersCriterion,
    TopicCriterion,
    criterion_for,
    headers_match,
    topic_matches,
)

# =====================================================================
#   topic_matches
# =====================================================================


class TestTopicMatches:
    @pytest.mark.parametrize("key", ["logs.error", "logs.info"])
    def test_star_matches_one_segment(self, key):
        assert topic_matches("logs.*", key)

    def test_star_does_not_match_two_segments(self):
        assert not topic_matches("logs.*", "logs.error.detail")

    def test_star_does_not_match_zero_segments(self):
        assert not topic_matches("logs.*", "logs")

    @pytest.mark.parametrize("key", ["logs.error", "general.info", "a", "a.b.c.d", ""])
    def test_hash_alone_matches_everything(self, key):
        assert topic_matches("#", key)

    def test_literal_pattern_is_exact(self):
        assert topic_matches("logs.error", "logs.error")
        assert not topic_matches("logs.error", "logs.info")
        assert not topic_matches("logs.error", "logs.error.detail")
        assert not topic_matches("logs.error", "logs")

    def test_trailing_hash_matches_zero_or_more(self):
        assert topic_matches("logs.#", "logs")
        assert topic_matches("logs.#", "logs.error")
        assert topic_matches("logs.#", "logs.error.detail")
        assert not topic_matches("logs.#", "metrics.cpu")

    def test_leading_and_inner_hash(self):
        assert topic_matches("#.error", "app.db.error")
        assert topic_matches("#.error", "error")
        assert topic_matches("app.#.error", "app.error")
        assert topic_matches("app.#.error", "app.db.pool.error")
        assert not topic_matches("app.#.error", "app.db.warning")

    def test_star_in_the_middle(self):
        assert topic_matches("*.error.*", "db.error.timeout")
        assert not topic_matches("*.error.*", "db.warning.timeout")

    def test_case_sensitive(self):
        assert not topic_matches("logs.error", "Logs.Error")


# =====================================================================
#   headers_match
# =====================================================================


class TestHeadersMatch:
    def test_all_requires_every_attribute(self):
        assert headers_match({"type": "report"}, {"type": "report", "format": "json"}, "all")
        assert not headers_match({"type": "report"}, {"type": "alert"}, "all")
        assert not headers_match({"type": "report", "format": "pdf"}, {"type": "report", "format": "json"}, "all")

    def test_any_requires_one_attribute(self):
        binding = {"type": "report", "format": "pdf"}
        assert headers_match(binding, {"type": "report", "format": "json"}, "any")
        assert not headers_match(binding, {"type": "alert"}, "any")

    def test_missing_attribute_does_not_match_all(self):
        assert not headers_match({"type": "report"}, {}, "all")
        assert not headers_match({"type": "report"}, None, "all")

    def test_empty_binding_all_matches_everything(self):
        assert headers_match({}, {"anything": 1}, "all")
        assert headers_match({}, {}, "all")

    def test_empty_binding_any_matches_nothing(self):
        assert not headers_match({}, {"anything": 1}, "any")

    def test_x_prefixed_keys_are_not_compared(self):
        assert headers_match({"x-match": "all", "type": "report"}, {"type": "report"}, "all")

    def test_values_compare_by_equality(self):
        assert headers_match({"priority": 5}, {"priority": 5}, "all")
        assert not headers_match({"priority": 5}, {"priority": "5"}, "all")


# =====================================================================
#   Criteria
# =====================================================================


class TestCriteria:
    def test_fanout_matches_unconditionally(self):
        criterion = FanoutCriterion()
        assert criterion.matches(None)
        assert criterion.matches("whatever", {"a": 1})
        assert criterion.binding_arguments() == ("", None)

    def test_direct_exact_key(self):
        criterion = DirectCriterion(routing_key="error")
        assert criterion.matches("error")
        assert not criterion.matches("warning")
        assert not criterion.matches("Error")
        assert not criterion.matches("error.detail")
        assert criterion.binding_arguments() == ("error", None)

    def test_direct_requires_key(self):
        with pytest.raises(ValidationError):
            DirectCriterion(routing_key="")

    def test_topic_binding_arguments(self):
        criterion = TopicCriterion(pattern="logs.*")
        assert criterion.segments == ["logs", "*"]
        assert criterion.binding_arguments() == ("logs.*", None)

    def test_headers_binding_arguments(self):
        criterion = HeadersCriterion(attributes={"type": "report"}, match="any")
        assert criterion.binding_arguments() == ("", {"x-match": "any", "type": "report"})

    def test_headers_match_mode_normalized(self):
        assert HeadersCriterion(match=" ALL ").match == "all"

    def test_headers_rejects_unknown_mode(self):
        with pytest.raises(ValidationError):
            HeadersCriterion(match="most")

    def test_headers_from_mapping_reads_x_match(self):
        criterion = HeadersCriterion.from_mapping({"x-match": "any", "type": "report"})
        assert criterion.match == "any"
        assert criterion.attributes == {"type": "report"}

    def test_headers_from_json_text(self):
        criterion = HeadersCriterion.from_mapping('{"type": "report"}')
        assert criterion.match == "all"
        assert criterion.matches(None, {"type": "report", "format": "json"})
        assert not criterion.matches(None, {"type": "alert"})

    def test_headers_from_malformed_text_matches_everything(self):
        criterion = HeadersCriterion.from_mapping("{not json")
        assert criterion.attributes == {}
        assert criterion.matches_everything

    def test_criteria_are_frozen(self):
        criterion = DirectCriterion(routing_key="info")
        with pytest.raises(ValidationError):
            criterion.routing_key = "error"


# =====================================================================
#   criterion_for
# =====================================================================


class TestCriterionFor:
    def test_defaults(self):
        assert isinstance(criterion_for(Topology.FANOUT), FanoutCriterion)
        assert criterion_for(Topology.DIRECT) == DirectCriterion(routing_key="info")
        assert criterion_for(Topology.TOPIC) == TopicCriterion(pattern="#")
        assert criterion_for(Topology.HEADERS) == HeadersCriterion()

    def test_custom_defaults(self):
        defaults = RoutingDefaults(direct_binding_key="error", topic_binding_pattern="logs.*")
        assert criterion_for("direct", None, defaults).routing_key == "error"
        assert criterion_for("topic", None, defaults).pattern == "logs.*"

    def test_raw_values(self):
        assert criterion_for("direct", "warning").routing_key == "warning"
        assert criterion_for("topic", "logs.#").pattern == "logs.#"
        assert criterion_for("headers", {"x-match": "any", "a": "1"}).match == "any"

    def test_fanout_ignores_value(self):
        assert isinstance(criterion_for("fanout", "ignored"), FanoutCriterion)

    def test_existing_criterion_passes_through(self):
        criterion = TopicCriterion(pattern="logs.*")
        assert criterion_for("topic", criterion) is criterion

    def test_mismatched_criterion_rejected(self):
        with pytest.raises(ValueError):
            criterion_for("direct", TopicCriterion(pattern="logs.*"))

    def test_queue_has_no_criterion(self):
        with pytest.raises(ValueError):
            criterion_for(Topology.QUEUE)
