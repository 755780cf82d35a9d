import argparse
import json
import sys
import threading

from . import telemetry
from .connector.rabbitmq.models import RabbitmqClient, Topology
from .exceptions import CourierException
from .manager import ConsumerManager

TOPOLOGIES = [t.value for t in Topology]


# ---------------------------------------------------------------------
# CLI parser
# ---------------------------------------------------------------------
def create_parser():
    parser = argparse.ArgumentParser(
        prog="courier",
        description="Publish to and consume from RabbitMQ exchanges and work queues",
    )
    parser.add_argument("--env-file", type=str, default=None, help="Env file with RABBITMQ_* settings")
    parser.add_argument(
        "--log-level",
        type=str.upper,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    )
    parser.add_argument("--log-format", choices=["text", "json"], default="text", help="Console log format")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # -----------------------------------------------------------------
    # courier publish <topology> <name> <message>
    # -----------------------------------------------------------------
    publish_parser = subparsers.add_parser(
        "publish",
        help="Publish one message",
        description="Example: courier publish topic demo_topic_exchange 'disk full' --routing-key logs.error",
    )
    publish_parser.add_argument("topology", choices=TOPOLOGIES)
    publish_parser.add_argument("name", type=str, help="Exchange name, or queue name for 'queue'")
    publish_parser.add_argument("message", type=str)
    publish_parser.add_argument("--routing-key", type=str, default=None)
    publish_parser.add_argument("--headers", type=str, default=None, help="JSON object, headers exchanges only")

    # -----------------------------------------------------------------
    # courier consume <topology> <name>
    # -----------------------------------------------------------------
    consume_parser = subparsers.add_parser(
        "consume",
        help="Consume messages in the foreground until interrupted",
        description="Example: courier consume headers demo_headers_exchange --binding '{\"x-match\": \"all\", \"type\": \"report\"}'",
    )
    consume_parser.add_argument("topology", choices=TOPOLOGIES)
    consume_parser.add_argument("name", type=str, help="Exchange name, or queue name for 'queue'")
    consume_parser.add_argument("--consumer-id", type=str, default=None)
    consume_parser.add_argument(
        "--binding",
        type=str,
        default=None,
        help="Routing key (direct), pattern (topic) or JSON headers (headers)",
    )

    return parser


def _publish(manager: ConsumerManager, args) -> int:
    result = manager.publish(
        args.topology,
        args.name,
        args.message,
        routing_key=args.routing_key,
        attributes=args.headers,
    )
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.ok else 1


def _consume(manager: ConsumerManager, args) -> int:
    handle = manager.start_consumer(args.topology, args.name, consumer_id=args.consumer_id, criterion=args.binding)
    print(f"Consumer '{handle.consumer_id}' listening on queue '{handle.queue.name}'. Press Ctrl-C to stop.")

    done = threading.Event()
    try:
        while handle.is_alive():
            done.wait(0.5)
    except KeyboardInterrupt:
        pass
    finally:
        handle.stop(timeout=5)

    if handle.error is not None:
        print(f"[ERROR] Consumer stopped: {handle.error}")
        return 1
    return 0


# ---------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------
def courier(argv=None):
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    telemetry.configure(logging=telemetry.LoggingConfig.for_cli(args.log_level, args.log_format))

    manager = ConsumerManager(client=RabbitmqClient.from_env(args.env_file))

    if args.command == "publish":
        sys.exit(_publish(manager, args))

    if args.command == "consume":
        try:
            code = _consume(manager, args)
        except CourierException as exc:
            print(f"[ERROR] Could not start consumer: {exc}")
            sys.exit(1)
        sys.exit(code)
