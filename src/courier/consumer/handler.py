import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

logger = logging.getLogger(__name__)


class Outcome(str, Enum):
    OK = "ok"
    RETRY = "retry"


class MessageHandler(ABC):
    """
    Processes one delivery.

    Return ``Outcome.OK`` to acknowledge it. Return ``Outcome.RETRY`` or raise to
    have it requeued for this or another consumer.
    """

    @abstractmethod
    def handle(self, payload: bytes, routing_key: Optional[str], attributes: Dict[str, Any]) -> Outcome:
        raise NotImplementedError


class FunctionHandler(MessageHandler):
    """Adapts a plain callable. A ``None`` return counts as success."""

    def __init__(self, fn: Callable[[bytes, Optional[str], Dict[str, Any]], Any]) -> None:
        self.fn = fn

    def handle(self, payload, routing_key, attributes) -> Outcome:
        result = self.fn(payload, routing_key, attributes)
        if result is Outcome.RETRY:
            return Outcome.RETRY
        return Outcome.OK

    def __repr__(self):
        return f"FunctionHandler({getattr(self.fn, '__name__', self.fn)!r})"


class LoggingHandler(MessageHandler):
    """Default handler: logs what arrived and acknowledges it."""

    def __init__(self, consumer_id: str) -> None:
        self.consumer_id = consumer_id

    def handle(self, payload, routing_key, attributes) -> Outcome:
        logger.info(f"Processing message in subscriber '{self.consumer_id}': {payload!r}")
        if routing_key:
            logger.info(f"Routing key: {routing_key}")
        if attributes:
            logger.info(f"Headers: {attributes}")
        return Outcome.OK


HandlerLike = Union[MessageHandler, Callable[..., Any], None]


def as_handler(handler: HandlerLike, consumer_id: str) -> MessageHandler:
    if handler is None:
        return LoggingHandler(consumer_id)
    if isinstance(handler, MessageHandler):
        return handler
    if callable(getattr(handler, "handle", None)):
        return FunctionHandler(handler.handle)
    if callable(handler):
        return FunctionHandler(handler)
    raise TypeError(f"Handler must be a MessageHandler or a callable, got {type(handler).__name__}.")
