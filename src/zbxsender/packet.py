"""
The sender protocol frames every message, request and response alike, with
a fixed header followed by a length field and a JSON payload.

.. code-block:: console

    +------------------+----------------------------+------------------+
    |  header          |  length                    |  payload         |
    +------------------+----------------------------+------------------+
    |  "ZBXD" 0x01     |  Body_Length  |  Reserved  |  JSON ....       |
    |  5 bytes         |  uint32 LE    |  uint32    |                  |
    +------------------+---------------+------------+------------------+

The length field is 8 bytes wide but only the low 32 bits carry the payload
length. The reserved half is always zero.
"""

import logging
import struct

from zbxsender import serialization
from zbxsender.exceptions import ProtocolHeaderMismatch
from zbxsender.metric import Metric
from typing import Any, Dict, Optional, Sequence

logger = logging.getLogger(__name__)


HEADER = b"ZBXD\x01"
HEADER_SIZE = len(HEADER)

LENGTH_FORMAT = "<II"
LENGTH_SIZE = struct.calcsize(LENGTH_FORMAT)

FRAME_HEADER_SIZE = HEADER_SIZE + LENGTH_SIZE

MAX_PAYLOAD_SIZE = 2 ** 32 - 1


REQUEST_SENDER_DATA = "sender data"
REQUEST_AGENT_DATA = "agent data"
REQUEST_ACTIVE_CHECKS = "active checks"


def frame(payload: bytes) -> bytes:
    """ Wrap *payload* with the protocol header and length field """
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise ValueError(
            f"Payload size ({len(payload)}) exceeds maximum payload size"
        )
    return HEADER + struct.pack(LENGTH_FORMAT, len(payload), 0) + payload


def unframe(data: bytes) -> bytes:
    """ Return the payload of a complete framed message.

    The payload is everything after the fixed 13 byte frame header. The length
    field is not used to delimit it because a reply is always read until the
    server closes the connection.

    :raises ProtocolHeaderMismatch: if *data* does not start with the
      protocol header.
    """
    header = bytes(data[:HEADER_SIZE])
    if header != HEADER:
        raise ProtocolHeaderMismatch(header)
    return bytes(data[FRAME_HEADER_SIZE:])


class Packet(object):
    """
    A request sent to the server in a single connection.

    A packet holds an ordered list of metrics of a single item type along
    with the request metadata. The request kind is derived from the metrics
    unless it is given explicitly: ``agent data`` when every metric is for an
    active item, otherwise ``sender data``.
    """

    def __init__(
        self,
        metrics: Optional[Sequence[Metric]] = None,
        clock: Optional[int] = None,
        request: Optional[str] = None,
        host: Optional[str] = None,
        host_metadata: Optional[str] = None,
    ):
        """
        :param metrics: The metrics to send. ``None`` leaves the ``data``
          list out of the request entirely.

        :param clock: An optional Unix timestamp for the whole request. When
          not set it is omitted and the server uses the time of receipt.

        :param request: An optional explicit request kind.

        :param host: The host name, only used by ``active checks`` requests.

        :param host_metadata: Optional metadata used by the server to match
          autoregistration rules.
        """
        self.metrics = None if metrics is None else list(metrics)
        self.clock = None if clock is None else int(clock)
        self.host = host
        self.host_metadata = host_metadata

        if request is None:
            if self.metrics and all(m.active for m in self.metrics):
                request = REQUEST_AGENT_DATA
            else:
                request = REQUEST_SENDER_DATA
        self.request = request

    def body(self) -> Dict[str, Any]:
        """ Return the JSON object for this request.

        Optional fields that are not set are left out rather than sent as
        null values.
        """
        body = {"request": self.request}  # type: Dict[str, Any]
        if self.metrics is not None:
            body["data"] = [m.to_dict() for m in self.metrics]
        if self.clock is not None:
            body["clock"] = self.clock
        if self.host is not None:
            body["host"] = self.host
        if self.host_metadata is not None:
            body["host_metadata"] = self.host_metadata
        return body

    def encode(self) -> bytes:
        """ Return the framed wire representation of this request """
        payload = serialization.dumps(self.body(), "json")
        return frame(payload)

    def __len__(self):
        return len(self.metrics) if self.metrics else 0

    def __repr__(self):
        return f"Packet(request={self.request!r}, metrics={len(self)})"
