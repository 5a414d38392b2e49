"""
This module contains the Sender, the client side of the sender protocol.

A sender pushes metrics to the server and decodes the server's
acknowledgement. Every transmission uses its own freshly opened connection
which is closed once the server has replied.
"""

import asyncio
import enum
import logging
import time

from collections import namedtuple
from zbxsender.exceptions import AutoregistrationFailed, ConfigError, SenderError
from zbxsender.metric import ItemType, Metric
from zbxsender.packet import REQUEST_ACTIVE_CHECKS, Packet
from zbxsender.response import STATUS_FAILED, Response
from zbxsender.stream.connection import Connection
from typing import Any, Iterable, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)


DEFAULT_HOST = "localhost"
DEFAULT_PORT = 10051
DEFAULT_CONNECT_TIMEOUT = 5.0
DEFAULT_WRITE_TIMEOUT = 5.0
# A busy server processing payloads full of discovery rules can take several
# seconds to reply.
DEFAULT_READ_TIMEOUT = 15.0


class ClockPolicy(enum.Enum):
    """ How metrics and requests without an explicit clock are timestamped.

    ``Omit`` leaves the clock out so the server records the time it
    received the data. ``Now`` stamps them with the local time at send.
    """

    Omit = "omit"
    Now = "now"


SendResult = namedtuple(
    "SendResult", ("active", "active_error", "trapper", "trapper_error")
)


class Sender(object):
    """
    A Sender transmits metrics to the server.

    Metrics for trapper items and metrics for active items are sent in
    separate requests (``sender data`` and ``agent data``). Each request is
    sent over a new connection and every phase of the connection (connect,
    write and read) has its own timeout.

    Errors are always raised, or returned in the case of
    :meth:`send_metrics`, to the caller. A Sender never retries, apart from
    the single retry performed by :meth:`register_host`.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        write_timeout: float = DEFAULT_WRITE_TIMEOUT,
        read_timeout: float = DEFAULT_READ_TIMEOUT,
        clock_policy: ClockPolicy = ClockPolicy.Omit,
        family: int = 0,
        loop: asyncio.AbstractEventLoop = None,
    ):
        """
        :param host: The server host name or address. Defaults to localhost.

        :param port: The server port. Defaults to 10051.

        :param connect_timeout: Seconds allowed for resolving the host and
          establishing the connection. Defaults to 5 seconds.

        :param write_timeout: Seconds allowed for writing a request. Defaults
          to 5 seconds.

        :param read_timeout: Seconds allowed for the server to reply and
          close the connection. Defaults to 15 seconds.

        :param clock_policy: How metrics without a clock are timestamped.
          Defaults to leaving the clock out.

        :param family: An optional address family integer from the socket
          module. Defaults to 0, which lets name resolution decide.

        :param loop: The event loop to run in.
        """
        self._loop = loop
        self._host = host
        self._port = port
        self._connect_timeout = connect_timeout
        self._write_timeout = write_timeout
        self._read_timeout = read_timeout
        self._clock_policy = clock_policy
        self._family = family

    @classmethod
    def from_config(cls, config: Mapping[str, Any], **kwargs) -> "Sender":
        """ Create a sender from a configuration mapping.

        :param config: A mapping as returned by
          :func:`zbxsender.config.load_config`.

        Keyword arguments are passed through to the constructor.
        """
        try:
            clock_policy = ClockPolicy(config.get("clock", ClockPolicy.Omit.value))
        except ValueError:
            raise ConfigError(f"Invalid clock policy: {config.get('clock')!r}") from None

        return cls(
            host=config.get("server", DEFAULT_HOST),
            port=config.get("port", DEFAULT_PORT),
            connect_timeout=config.get("connect_timeout", DEFAULT_CONNECT_TIMEOUT),
            write_timeout=config.get("write_timeout", DEFAULT_WRITE_TIMEOUT),
            read_timeout=config.get("read_timeout", DEFAULT_READ_TIMEOUT),
            clock_policy=clock_policy,
            **kwargs,
        )

    @property
    def addr(self) -> Tuple[str, int]:
        """ Return the server address """
        return (self._host, self._port)

    @property
    def connect_timeout(self) -> float:
        return self._connect_timeout

    @property
    def write_timeout(self) -> float:
        return self._write_timeout

    @property
    def read_timeout(self) -> float:
        return self._read_timeout

    @property
    def clock_policy(self) -> ClockPolicy:
        return self._clock_policy

    async def send(self, packet: Packet) -> bytes:
        """ Send a packet and return the server's raw reply.

        A new connection is opened for the packet and it is always closed
        before returning, whether the exchange succeeded or not.

        :param packet: The request to send.

        :returns: The complete reply, frame header included.

        :raises TransportError: if any connection phase failed or timed out.
        """
        data = packet.encode()

        conn = await Connection.open(
            self._host,
            self._port,
            self._connect_timeout,
            family=self._family,
            loop=self._loop,
        )
        try:
            await conn.write(data, self._write_timeout)
            return await conn.read_all(self._read_timeout)
        finally:
            conn.close()

    async def send_packet(self, packet: Packet) -> Response:
        """ Send a packet and return the decoded acknowledgement """
        raw = await self.send(packet)
        return Response.decode(raw)

    async def send_metrics(self, metrics: Iterable[Metric]) -> SendResult:
        """ Send metrics, grouped by item type, to the server.

        Metrics are partitioned into active and trapper metrics, keeping
        their relative order, and each non empty group is sent as its own
        request over its own connection. The two requests are independent
        and are sent concurrently. A failure sending one group does not
        affect the other.

        :param metrics: The metrics to send.

        :returns: A SendResult holding the response and error for each
          group. A group with no metrics is not sent and both of its fields
          are None.
        """
        active = []  # type: List[Metric]
        trapper = []  # type: List[Metric]
        for metric in metrics:
            if metric.item_type is ItemType.Active:
                active.append(metric)
            else:
                trapper.append(metric)

        groups = [group for group in (active, trapper) if group]
        results = await asyncio.gather(
            *(self.send_packet(self._make_packet(group)) for group in groups),
            return_exceptions=True,
        )
        outcomes = iter(results)

        fields = []  # type: List[Any]
        for group in (active, trapper):
            if not group:
                fields.extend((None, None))
                continue

            outcome = next(outcomes)
            if isinstance(outcome, SenderError):
                fields.extend((None, outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                fields.extend((outcome, None))

        return SendResult(*fields)

    async def register_host(self, host: str, host_metadata: Optional[str] = None):
        """ Autoregister a host with the server.

        The server always reports the first autoregistration request for a
        host it does not know yet as failed, even though the host is
        accepted. For that reason a failed first attempt is repeated once.

        :param host: The name of the host to register.

        :param host_metadata: Optional metadata used by the server to match
          autoregistration actions.

        :raises AutoregistrationFailed: if the retry was also reported as
          failed.
        """
        packet = Packet(
            request=REQUEST_ACTIVE_CHECKS, host=host, host_metadata=host_metadata
        )

        response = await self.send_packet(packet)
        if response.success:
            logger.debug(f"Host '{host}' registered")
            return

        logger.info(
            f"Autoregistration of host '{host}' reported '{response.status}', retrying"
        )
        response = await self.send_packet(packet)
        if response.status == STATUS_FAILED:
            logger.error(f"Autoregistration of host '{host}' failed: {response.info}")
            raise AutoregistrationFailed(host, response.info)

        logger.debug(f"Host '{host}' registered on retry")

    def _make_packet(self, metrics: List[Metric]) -> Packet:
        """ Build the request for a group of metrics of one item type """
        if self._clock_policy is ClockPolicy.Now:
            now = int(time.time())
            metrics = [m if m.clock is not None else m.with_clock(now) for m in metrics]
            return Packet(metrics, clock=now)
        return Packet(metrics)
