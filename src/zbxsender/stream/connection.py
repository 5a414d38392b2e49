import asyncio
import logging

from zbxsender.exceptions import (
    ConnectFailure,
    ConnectTimeout,
    ReadFailure,
    ReadTimeout,
    WriteFailure,
    WriteTimeout,
)
from zbxsender.stream.protocol import SenderProtocol
from typing import Tuple

logger = logging.getLogger(__name__)


class Connection(object):
    """
    A single TCP connection to the server.

    Each phase of a connection's lifecycle (connect, write and read) is
    bounded by its own timeout. Every timeout and I/O failure is raised to
    the caller, nothing is retried and nothing is reused. A connection is
    expected to be closed by its owner once the exchange is complete.
    """

    def __init__(self, addr: Tuple[str, int], protocol: SenderProtocol):
        self.addr = addr
        self.protocol = protocol

    @classmethod
    async def open(
        cls,
        host: str,
        port: int,
        timeout: float,
        family: int = 0,
        loop: asyncio.AbstractEventLoop = None,
    ) -> "Connection":
        """ Resolve and connect to the server.

        The connection attempt runs as a task raced against *timeout*. When
        the timeout expires first the attempt is cancelled, which also
        closes any socket it had created.

        :param host: The server host name or address.

        :param port: The server port.

        :param timeout: The maximum number of seconds to spend resolving the
          host name and establishing the connection.

        :param family: An optional address family integer from the socket
          module. Defaults to 0, which lets name resolution decide.

        :raises ConnectTimeout: if the connection was not established in time.

        :raises ConnectFailure: if name resolution failed or the connection
          was refused or unreachable.
        """
        loop = loop or asyncio.get_event_loop()
        addr = (host, port)

        logger.debug(f"Connecting to {host}:{port}")

        try:
            _transport, protocol = await asyncio.wait_for(
                loop.create_connection(
                    lambda: SenderProtocol(loop=loop), host=host, port=port, family=family
                ),
                timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Connection to {host}:{port} timed out after {timeout}s")
            raise ConnectTimeout(addr, timeout) from None
        except OSError as exc:
            # When connecting to "localhost", some systems try to connect to
            # both 127.0.0.1 and ::1 resulting in an OSError(Multiple errors
            # occurred) that wraps two ConnectionRefusedErrors
            logger.error(f"Connection to {host}:{port} failed: {exc}")
            raise ConnectFailure(addr, str(exc)) from exc

        return cls(addr, protocol)

    async def write(self, data: bytes, timeout: float) -> None:
        """ Write *data* and wait until it has been handed to the OS.

        :raises WriteTimeout: if the write buffer did not drain in time.

        :raises WriteFailure: if the connection failed while writing.
        """
        try:
            self.protocol.send(data)
            await asyncio.wait_for(self.protocol.drain(), timeout)
        except asyncio.TimeoutError:
            logger.error(f"Write to {self._addr_str} timed out after {timeout}s")
            raise WriteTimeout(self.addr, timeout) from None
        except OSError as exc:
            logger.error(f"Write to {self._addr_str} failed: {exc}")
            raise WriteFailure(self.addr, str(exc)) from exc

    async def read_all(self, timeout: float) -> bytes:
        """ Read until the server closes the connection.

        :raises ReadTimeout: if the server did not finish its reply in time.

        :raises ReadFailure: if the connection failed while reading.
        """
        try:
            # The reply future is shielded so a timeout does not cancel it,
            # close() takes care of it.
            data = await asyncio.wait_for(asyncio.shield(self.protocol.reply), timeout)
        except asyncio.TimeoutError:
            logger.error(f"Read from {self._addr_str} timed out after {timeout}s")
            raise ReadTimeout(self.addr, timeout) from None
        except OSError as exc:
            logger.error(f"Read from {self._addr_str} failed: {exc}")
            raise ReadFailure(self.addr, str(exc)) from exc

        logger.debug(f"Received {len(data)} bytes from {self._addr_str}")
        return data

    def close(self) -> None:
        """ Close the connection. Calling this more than once is harmless. """
        self.protocol.close()

        reply = self.protocol.reply
        if not reply.done():
            reply.cancel()
        elif not reply.cancelled():
            # Mark any stored exception as retrieved.
            reply.exception()

    @property
    def _addr_str(self) -> str:
        host, port = self.addr
        return f"{host}:{port}"
