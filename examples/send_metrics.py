import asyncio
import logging
from zbxsender.metric import ItemType, Metric
from zbxsender.sender import Sender


if __name__ == "__main__":

    import argparse

    parser = argparse.ArgumentParser(description="Send Metrics Example")
    parser.add_argument(
        "--server",
        metavar="<host>",
        type=str,
        default="localhost",
        help="The server to send metrics to",
    )
    parser.add_argument(
        "--port",
        metavar="<port>",
        type=int,
        default=10051,
        help="The port that the server listens on",
    )
    parser.add_argument(
        "--host",
        metavar="<host>",
        type=str,
        default="example-host",
        help="The monitored host the metrics belong to",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "error"],
        default="error",
        help="Logging level. Default is 'error'.",
    )

    args = parser.parse_args()

    logging.basicConfig(
        format="%(asctime)s.%(msecs)03.0f [%(levelname)s] [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=getattr(logging, args.log_level.upper()),
    )

    async def main():
        sender = Sender(args.server, args.port)

        metrics = [
            Metric(args.host, "example.trapper.counter", 42),
            Metric(args.host, "example.trapper.status", "ok"),
            Metric(args.host, "agent.ping", 1, item_type=ItemType.Active),
        ]

        result = await sender.send_metrics(metrics)

        for label, response, error in (
            ("active", result.active, result.active_error),
            ("trapper", result.trapper, result.trapper_error),
        ):
            if error:
                print(f"{label} metrics failed: {error}")
            elif response:
                print(f"{label} metrics: {response.status}, {response.summary()}")

    asyncio.run(main())
