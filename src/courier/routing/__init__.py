from .binding import BindingResolver, declare_queue
from .exchange import declare_exchange
from .matching import (
    DirectCriterion,
    FanoutCriterion,
    HeadersCriterion,
    MatchCriterion,
    TopicCriterion,
    criterion_for,
    headers_match,
    topic_matches,
)
from .publisher import ExchangePublisher

__all__ = [
    "ExchangePublisher",
    "BindingResolver",
    "declare_exchange",
    "declare_queue",
    "MatchCriterion",
    "FanoutCriterion",
    "DirectCriterion",
    "TopicCriterion",
    "HeadersCriterion",
    "criterion_for",
    "topic_matches",
    "headers_match",
]
