import logging
import secrets
import threading
from typing import Any, Callable, Dict, List, Optional

from .connector.rabbitmq.connection import ConnectionManager
from .connector.rabbitmq.helper import parse_attributes
from .connector.rabbitmq.models import PublishResult, Queue, RabbitmqClient, RoutingDefaults, Topology
from .consumer.handler import HandlerLike
from .consumer.loop import DeliveryLoop
from .consumer.work_queue import WorkQueue
from .exceptions import CourierException
from .routing.binding import BindingResolver
from .routing.publisher import ExchangePublisher

logger = logging.getLogger(__name__)


class ConsumerHandle:
    """A consumer running on its own thread."""

    def __init__(self, consumer_id: str, topology: Topology, target: str, queue: Queue, loop: DeliveryLoop) -> None:
        self.consumer_id = consumer_id
        self.topology = topology
        self.target = target
        self.queue = queue
        self.loop = loop
        self.error: Optional[BaseException] = None
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=f"courier-{consumer_id}", daemon=True)

    def _run(self) -> None:
        try:
            self.loop.consume(self.queue, stop_event=self._stop)
        except CourierException as e:
            # Connection loss ends the consumer; the caller has to start a new one.
            self.error = e
            logger.error(f"Consumer '{self.consumer_id}' stopped: {e}")
        except Exception as e:
            self.error = e
            logger.exception(f"Consumer '{self.consumer_id}' crashed: {e}")

    def start(self) -> "ConsumerHandle":
        self._thread.start()
        return self

    def stop(self, timeout: Optional[float] = None) -> bool:
        """Request cancellation and wait for the loop to release its connection."""
        self._stop.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout)
        return not self._thread.is_alive()

    def is_alive(self) -> bool:
        return self._thread.is_alive()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "consumer_id": self.consumer_id,
            "topology": self.topology.value,
            "target": self.target,
            "queue": self.queue.name,
            "alive": self.is_alive(),
            "error": self.error.to_dict() if isinstance(self.error, CourierException) else None,
        }


class ConsumerManager:
    """
    Narrow entry point for callers such as an HTTP layer or the CLI.

    ``publish`` never raises for broker or routing problems, it returns a failed
    PublishResult instead. ``start_consumer`` binds synchronously (so binding
    failures raise) and then returns while the consumer runs in the background.
    """

    def __init__(
        self,
        client: Optional[RabbitmqClient] = None,
        defaults: Optional[RoutingDefaults] = None,
        connection_factory: Optional[Callable] = None,
    ) -> None:
        self.connections = ConnectionManager(client, connection_factory=connection_factory)
        self.defaults = defaults or RoutingDefaults()
        self.publisher = ExchangePublisher(self.connections, self.defaults)
        self.binder = BindingResolver(self.connections, self.defaults)
        self.work_queue = WorkQueue(self.connections)
        self._consumers: Dict[str, List[ConsumerHandle]] = {}
        self._lock = threading.Lock()

    # -------------------------------------------------------------
    # PUBLISH
    # -------------------------------------------------------------
    def publish(
        self,
        topology: Topology,
        name: str,
        message: Any,
        routing_key: Optional[str] = None,
        attributes: Any = None,
    ) -> PublishResult:
        topology = Topology(topology)
        headers = parse_attributes(attributes) if topology is Topology.HEADERS else {}

        try:
            if topology is Topology.QUEUE:
                sent = self.work_queue.enqueue(name, message)
            else:
                sent = self.publisher.publish(name, topology, message, routing_key=routing_key, attributes=headers)
        except (CourierException, ValueError) as e:
            logger.error(f"Publish to {topology.value} '{name}' failed: {e}")
            error = e.to_dict() if isinstance(e, CourierException) else {"message": str(e), "type": type(e).__name__}
            return PublishResult(
                ok=False, topology=topology, target=name, routing_key=routing_key, attributes=headers, error=error
            )

        return PublishResult(
            ok=True,
            topology=topology,
            target=name,
            routing_key=sent.routing_key,
            attributes=sent.attributes,
            size=len(sent.body),
        )

    # -------------------------------------------------------------
    # CONSUME
    # -------------------------------------------------------------
    def generate_consumer_id(self, topology: Topology) -> str:
        return f"{self.defaults.consumer_prefixes[Topology(topology)]}{secrets.token_hex(4)}"

    def start_consumer(
        self,
        topology: Topology,
        name: str,
        consumer_id: Optional[str] = None,
        criterion: Any = None,
        handler: HandlerLike = None,
    ) -> ConsumerHandle:
        topology = Topology(topology)
        consumer_id = consumer_id or self.generate_consumer_id(topology)

        if topology is Topology.QUEUE:
            queue = self.work_queue.declare(name)
            loop = self.work_queue.consumer(handler, consumer_id)
        else:
            queue = self.binder.bind(name, topology, consumer_id, criterion)
            loop = DeliveryLoop(self.connections, handler=handler, name=consumer_id)

        with self._lock:
            handles = self._consumers.setdefault(consumer_id, [])
            if any(h.queue.name == queue.name and h.is_alive() for h in handles):
                logger.warning(
                    f"Consumer id '{consumer_id}' is already running on queue '{queue.name}'; "
                    f"both consumers will share its messages"
                )
            handle = ConsumerHandle(consumer_id, topology, name, queue, loop)
            handles.append(handle)

        logger.info(f"Started {topology.value} consumer '{consumer_id}' on '{name}' (queue '{queue.name}')")
        return handle.start()

    def stop(self, consumer_id: str, timeout: Optional[float] = None) -> bool:
        """Stop every consumer registered under ``consumer_id``, whatever exchange or queue it reads."""
        with self._lock:
            handles = self._consumers.pop(consumer_id, None)
        if not handles:
            raise KeyError(f"No consumer named '{consumer_id}'.")
        stopped = [handle.stop(timeout) for handle in handles]
        return all(stopped)

    def stop_all(self, timeout: Optional[float] = None) -> None:
        with self._lock:
            handles = [h for group in self._consumers.values() for h in group]
            self._consumers.clear()
        for handle in handles:
            handle.stop(timeout)

    def list_consumers(self) -> List[Dict[str, Any]]:
        with self._lock:
            return [handle.to_dict() for group in self._consumers.values() for handle in group]
