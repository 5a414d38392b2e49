import asyncio
import logging
from zbxsender.exceptions import AutoregistrationFailed
from zbxsender.sender import Sender


if __name__ == "__main__":

    import argparse

    parser = argparse.ArgumentParser(description="Host Autoregistration Example")
    parser.add_argument(
        "--server",
        metavar="<host>",
        type=str,
        default="localhost",
        help="The server to register with",
    )
    parser.add_argument(
        "--port",
        metavar="<port>",
        type=int,
        default=10051,
        help="The port that the server listens on",
    )
    parser.add_argument(
        "--host", metavar="<host>", type=str, required=True, help="The host to register"
    )
    parser.add_argument(
        "--metadata",
        metavar="<metadata>",
        type=str,
        default=None,
        help="Host metadata matched by the server's autoregistration actions",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["debug", "info", "error"],
        default="info",
        help="Logging level. Default is 'info'.",
    )

    args = parser.parse_args()

    logging.basicConfig(
        format="%(asctime)s.%(msecs)03.0f [%(levelname)s] [%(name)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        level=getattr(logging, args.log_level.upper()),
    )

    async def main():
        sender = Sender(args.server, args.port)
        try:
            await sender.register_host(args.host, args.metadata)
            print(f"Host {args.host} registered")
        except AutoregistrationFailed as exc:
            print(exc)

    asyncio.run(main())
