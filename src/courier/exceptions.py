from enum import Enum


class ExceptionType(str, Enum):
    BUSINESS = "BUSINESS"
    SYSTEM = "SYSTEM"
    TIMEOUT = "TIMEOUT"


class CourierException(Exception):
    """
    Base class for every error raised by courier.
    """

    message: str = "A courier error occurred."
    category: ExceptionType = ExceptionType.SYSTEM

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)

    def __str__(self):
        return self.message

    def to_dict(self):
        return {
            "message": self.message,
            "category": self.category.value,
            "type": self.__class__.__name__,
        }


class BrokerConnectionError(CourierException, ConnectionError):
    """
    Raised when the broker is unreachable or the connection drops.
    Never retried internally.
    """

    message: str = "Could not reach the message broker."


class ChannelError(CourierException):
    """
    Raised when the broker closes a channel for a reason other than a topology conflict.
    """

    message: str = "The broker closed the channel."

    def __init__(self, message: str | None = None, reply_code: int | None = None):
        self.reply_code = reply_code
        super().__init__(message)

    def to_dict(self):
        return {**super().to_dict(), "reply_code": self.reply_code}


class TopologyConflict(CourierException):
    """
    Raised when an exchange name is reused with a different type than the one it was declared with.
    """

    message: str = "Exchange already exists with a different type."

    def __init__(self, exchange: str, topology: str, message: str | None = None):
        self.exchange = exchange
        self.topology = topology
        super().__init__(
            message or f"Exchange '{exchange}' already exists with a type other than '{topology}'."
        )

    def to_dict(self):
        return {**super().to_dict(), "exchange": self.exchange, "topology": self.topology}


class MissingRoutingKey(CourierException):
    """
    Raised when a direct or topic publish has no routing key and no default to fall back on.
    """

    message: str = "A routing key is required for this exchange type."
    category: ExceptionType = ExceptionType.BUSINESS


class HandlerFailure(CourierException):
    """
    Wraps an error raised by a message handler.
    The delivery loop logs it and requeues the delivery; it never reaches the caller of consume().
    """

    message: str = "The message handler failed."
    category: ExceptionType = ExceptionType.BUSINESS

    def __init__(
        self,
        message: str | None = None,
        delivery_tag: int | None = None,
        cause: BaseException | None = None,
    ):
        self.delivery_tag = delivery_tag
        self.cause = cause
        super().__init__(message)

    def __str__(self):
        if self.delivery_tag is not None:
            return f"({self.category.value} - {self.delivery_tag}) {self.message}"
        return f"({self.category.value}) {self.message}"

    def to_dict(self):
        return {**super().to_dict(), "delivery_tag": self.delivery_tag}


class MalformedAttributeInput(CourierException):
    """
    Raised internally when caller supplied attributes cannot be read as a mapping.
    Always recovered: the attributes are treated as empty.
    """

    message: str = "Attributes could not be parsed as a mapping."
    category: ExceptionType = ExceptionType.BUSINESS
