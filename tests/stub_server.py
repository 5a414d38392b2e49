"""
A minimal server used by the tests. It reads one framed request per
connection, records the decoded request body, writes back whatever the
handler returns and then closes the connection, just like the real server.
"""

import asyncio
import json
import struct

from zbxsender.packet import FRAME_HEADER_SIZE, HEADER_SIZE, LENGTH_FORMAT, frame


def make_reply(status: str = "success", info: str = None) -> bytes:
    """ Return a framed server reply """
    if info is None:
        info = "processed: 1; failed: 0; total: 1; seconds spent: 0.000055"
    body = {"response": status}
    if info:
        body["info"] = info
    return frame(json.dumps(body).encode("utf-8"))


class StubProtocol(asyncio.Protocol):
    def __init__(self, server):
        self.server = server
        self.transport = None
        self._buffer = bytearray()
        self._replied = False

    def connection_made(self, transport):
        self.transport = transport
        self.server.transports.append(transport)

    def data_received(self, data):
        self._buffer.extend(data)
        if self._replied or len(self._buffer) < FRAME_HEADER_SIZE:
            return

        body_len, _reserved = struct.unpack(
            LENGTH_FORMAT, self._buffer[HEADER_SIZE:FRAME_HEADER_SIZE]
        )
        if len(self._buffer) < FRAME_HEADER_SIZE + body_len:
            return

        self._replied = True
        request = json.loads(
            bytes(self._buffer[FRAME_HEADER_SIZE : FRAME_HEADER_SIZE + body_len])
        )
        self.server.requests.append(request)
        self.server.raw_requests.append(bytes(self._buffer))

        reply = self.server.handler(request)
        if reply is None:
            # Stay silent and keep the connection open.
            return
        self.transport.write(reply)
        self.transport.close()


class StubServer(object):
    """
    :param handler: A callable that is passed each decoded request and
      returns the reply bytes, or None to never reply.
    """

    def __init__(self, handler=None):
        self.handler = handler or (lambda request: make_reply())
        self.requests = []
        self.raw_requests = []
        self.transports = []
        self._server = None

    @classmethod
    def with_replies(cls, *replies: bytes) -> "StubServer":
        """ Create a server answering successive requests with *replies*.

        The last reply is repeated once the others are used up.
        """
        pending = list(replies)

        def handler(request):
            return pending.pop(0) if len(pending) > 1 else pending[0]

        return cls(handler)

    @property
    def port(self) -> int:
        return self._server.sockets[0].getsockname()[1]

    async def start(self):
        loop = asyncio.get_event_loop()
        self._server = await loop.create_server(
            lambda: StubProtocol(self), host="127.0.0.1", port=0
        )

    async def stop(self):
        for transport in self.transports:
            transport.close()
        self._server.close()
        await self._server.wait_closed()
