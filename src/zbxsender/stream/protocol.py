import asyncio
import binascii
import logging
import os

from typing import Optional, Tuple


logger = logging.getLogger(__name__)


class SenderProtocol(asyncio.Protocol):
    """
    This protocol drives a single request/reply exchange with the server.

    A request is written in one go and the reply is collected until the
    server closes the connection. The complete reply is then made available
    through the :attr:`reply` future. The server always closes the
    connection once it has replied, so end of stream marks the end of the
    reply.

    Write flow control follows the transport's pause/resume notifications so
    a caller can wait for the request to leave the write buffer.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop = None):
        self.loop = loop or asyncio.get_event_loop()
        self._remote_address = None  # type: Optional[Tuple[str, int]]
        self._local_address = None  # type: Optional[Tuple[str, int]]
        self._identity = b""
        self._buffer = bytearray()
        self._paused = False
        self._drain_waiter = None  # type: Optional[asyncio.Future]

        self.transport = None
        self.reply = self.loop.create_future()  # type: asyncio.Future

    @property
    def raddr(self) -> Tuple[str, int]:
        """ Return the remote address the protocol is connected with """
        return self._remote_address

    @property
    def laddr(self) -> Tuple[str, int]:
        """ Return the local address the protocol is using """
        return self._local_address

    @property
    def identity(self) -> bytes:
        """ Return the protocol's unique identifier, used to correlate logs """
        return self._identity

    def connection_made(self, transport):
        """
        Called by the event loop when the protocol is connected with a transport.
        """
        self.transport = transport

        # Depending on the socket family, the address may be a 2-tuple for
        # IPv4 or a 4-tuple for IPv6 which needs to be converted to the
        # expected 2-tuple.
        def get_host_port(info) -> Tuple[str, int]:
            if info and len(info) == 4:
                host, port, _flowinfo, _scopeid = info
                info = (host, port)
            return info

        self._remote_address = get_host_port(transport.get_extra_info("peername"))
        self._local_address = get_host_port(transport.get_extra_info("sockname"))
        self._identity = binascii.hexlify(os.urandom(5))

        logger.debug(
            f"Connection made. id={self._identity}, "
            f"laddr={self._local_address}, "
            f"raddr={self._remote_address}"
        )

    def data_received(self, data):
        """ Accumulate reply bytes until the server closes the connection """
        self._buffer.extend(data)

    def eof_received(self):
        """ The server has finished its reply.

        Returning a false value lets the transport close itself, which in
        turn calls :meth:`connection_lost`.
        """
        logger.debug(f"EOF received. id={self._identity}, bytes={len(self._buffer)}")
        return False

    def connection_lost(self, exc):
        """
        Called by the event loop when the protocol is disconnected from a transport.
        """
        logger.debug(
            f"Connection lost. id={self._identity}, "
            f"laddr={self._local_address}, "
            f"raddr={self._remote_address}, "
            f"reason={exc}"
        )

        if not self.reply.done():
            if exc is None:
                self.reply.set_result(bytes(self._buffer))
            else:
                self.reply.set_exception(exc)

        # Release anyone waiting for the write buffer to drain.
        self._paused = False
        self._wake_drain_waiter(exc)

        self.transport = None

    def pause_writing(self):
        self._paused = True

    def resume_writing(self):
        self._paused = False
        self._wake_drain_waiter(None)

    def _wake_drain_waiter(self, exc):
        waiter = self._drain_waiter
        if waiter is None:
            return
        self._drain_waiter = None
        if not waiter.done():
            if exc is None:
                waiter.set_result(None)
            else:
                waiter.set_exception(exc)

    def send(self, data: bytes):
        """ Sends a message by writing it to the transport.

        :param data: a bytes object containing a framed request.
        """
        if self.transport is None or self.transport.is_closing():
            raise ConnectionResetError("Connection lost")

        logger.debug(f"Sending msg with {len(data)} bytes. id={self._identity}")

        self.transport.write(data)

    async def drain(self) -> None:
        """ Wait until the transport's write buffer is below its high-water mark """
        if self.transport is None:
            raise ConnectionResetError("Connection lost")
        if not self._paused:
            return
        self._drain_waiter = self.loop.create_future()
        await self._drain_waiter

    def close(self):
        """
        Close this connection.
        """
        if self.transport:
            logger.debug(
                f"Closing connection. id={self._identity}, "
                f"laddr={self._local_address}, raddr={self._remote_address}"
            )
            self.transport.close()
