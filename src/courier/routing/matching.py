"""
Binding criteria for the four exchange types.

Each criterion knows how to describe itself to the broker (``binding_arguments``)
and how the broker decides whether a published message reaches the bound queue
(``matches``). The broker is the authority at runtime; the client-side rule is
used for validation, logging and the in-memory broker the tests run against.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..connector.rabbitmq.helper import parse_attributes
from ..connector.rabbitmq.models import RoutingDefaults, Topology

logger = logging.getLogger(__name__)

MATCH_HEADER = "x-match"


def topic_matches(pattern: str, routing_key: str) -> bool:
    """
    Match a dot-segmented routing key against a topic pattern.

    ``*`` matches exactly one segment, ``#`` matches zero or more segments.
    """
    return _match_segments(pattern.split("."), (routing_key or "").split("."))


def _match_segments(pattern: Sequence[str], words: Sequence[str]) -> bool:
    if not pattern:
        return not words

    head, rest = pattern[0], pattern[1:]

    if head == "#":
        # Collapse consecutive '#' tokens, they add nothing.
        while rest and rest[0] == "#":
            rest = rest[1:]
        if not rest:
            return True
        return any(_match_segments(rest, words[i:]) for i in range(len(words) + 1))

    if not words:
        return False

    if head == "*" or head == words[0]:
        return _match_segments(rest, words[1:])

    return False


def headers_match(binding: Mapping, attributes: Optional[Mapping], mode: str = "all") -> bool:
    """
    all: every binding attribute present in the message with an equal value.
    any: at least one such attribute.

    Binding keys starting with ``x-`` are broker arguments and are not compared.
    An empty binding matches everything in ``all`` mode and nothing in ``any`` mode.
    """
    attributes = attributes or {}
    pairs = [(k, v) for k, v in binding.items() if not str(k).startswith("x-")]

    hits = (k in attributes and attributes[k] == v for k, v in pairs)
    if mode == "any":
        return any(hits)
    return all(hits)


class MatchCriterion(BaseModel, ABC):
    model_config = ConfigDict(frozen=True)

    topology: Topology

    @abstractmethod
    def matches(self, routing_key: Optional[str], attributes: Optional[Mapping] = None) -> bool:
        """Whether a message published with this key/attributes reaches a queue bound with this criterion."""

    @abstractmethod
    def binding_arguments(self) -> Tuple[str, Optional[Dict[str, Any]]]:
        """The (routing_key, arguments) pair passed to queue_bind."""

    def describe(self) -> str:
        return self.topology.value


class FanoutCriterion(MatchCriterion):
    topology: Literal[Topology.FANOUT] = Topology.FANOUT

    def matches(self, routing_key, attributes=None) -> bool:
        return True

    def binding_arguments(self):
        return "", None


class DirectCriterion(MatchCriterion):
    topology: Literal[Topology.DIRECT] = Topology.DIRECT
    routing_key: str = Field(min_length=1)

    def matches(self, routing_key, attributes=None) -> bool:
        return routing_key == self.routing_key

    def binding_arguments(self):
        return self.routing_key, None

    def describe(self) -> str:
        return f"routing key '{self.routing_key}'"


class TopicCriterion(MatchCriterion):
    topology: Literal[Topology.TOPIC] = Topology.TOPIC
    pattern: str = Field(min_length=1)

    @property
    def segments(self) -> List[str]:
        return self.pattern.split(".")

    def matches(self, routing_key, attributes=None) -> bool:
        return topic_matches(self.pattern, routing_key or "")

    def binding_arguments(self):
        return self.pattern, None

    def describe(self) -> str:
        return f"pattern '{self.pattern}'"


class HeadersCriterion(MatchCriterion):
    topology: Literal[Topology.HEADERS] = Topology.HEADERS
    attributes: Dict[str, Any] = Field(default_factory=dict)
    match: Literal["all", "any"] = "all"

    @field_validator("match", mode="before")
    @classmethod
    def _normalize_match(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @classmethod
    def from_mapping(cls, raw: Any) -> "HeadersCriterion":
        """Build from a mapping (or JSON text) that may carry the match mode under ``x-match``."""
        data = parse_attributes(raw)
        match = data.pop(MATCH_HEADER, "all")
        return cls(attributes=data, match=match)

    @property
    def matches_everything(self) -> bool:
        return self.match == "all" and not self.attributes

    def matches(self, routing_key, attributes=None) -> bool:
        return headers_match(self.attributes, attributes, self.match)

    def binding_arguments(self):
        return "", {MATCH_HEADER: self.match, **self.attributes}

    def describe(self) -> str:
        return f"headers {self.attributes!r} (x-match={self.match})"


def criterion_for(
    topology: Topology,
    value: Any = None,
    defaults: Optional[RoutingDefaults] = None,
) -> MatchCriterion:
    """
    Build the criterion for a topology from a raw caller value.

    - fanout: value ignored
    - direct: routing key, defaulting to ``defaults.direct_binding_key``
    - topic: pattern, defaulting to ``defaults.topic_binding_pattern``
    - headers: mapping or JSON text, optional ``x-match``
    """
    topology = Topology(topology)
    defaults = defaults or RoutingDefaults()

    if isinstance(value, MatchCriterion):
        if value.topology is not topology:
            raise ValueError(f"A {value.topology.value} criterion cannot bind to a {topology.value} exchange.")
        return value

    if topology is Topology.FANOUT:
        return FanoutCriterion()
    if topology is Topology.DIRECT:
        return DirectCriterion(routing_key=value or defaults.direct_binding_key)
    if topology is Topology.TOPIC:
        return TopicCriterion(pattern=value or defaults.topic_binding_pattern)
    if topology is Topology.HEADERS:
        return HeadersCriterion.from_mapping(value)

    raise ValueError("Work queues are not bound to an exchange.")
