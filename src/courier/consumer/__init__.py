from .handler import FunctionHandler, LoggingHandler, MessageHandler, Outcome, as_handler
from .loop import DeliveryLoop
from .work_queue import WorkQueue

__all__ = [
    "DeliveryLoop",
    "WorkQueue",
    "MessageHandler",
    "FunctionHandler",
    "LoggingHandler",
    "Outcome",
    "as_handler",
]
