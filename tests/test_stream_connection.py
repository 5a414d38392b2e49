import asyncio
import logging
import socket
import time
import unittest
import unittest.mock

from stub_server import StubServer, make_reply
from zbxsender.exceptions import (
    ConnectFailure,
    ConnectTimeout,
    ReadFailure,
    ReadTimeout,
    WriteFailure,
    WriteTimeout,
)
from zbxsender.packet import Packet
from zbxsender.metric import Metric
from zbxsender.stream.connection import Connection
from zbxsender.stream.protocol import SenderProtocol


def unused_port() -> int:
    """ Return a localhost port that nothing is listening on """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


def create_connection_with_mock_transport():
    transport_mock = unittest.mock.Mock()
    transport_mock.is_closing.return_value = False
    transport_mock.get_extra_info.return_value = ("127.0.0.1", 10051)
    protocol = SenderProtocol()
    protocol.connection_made(transport_mock)
    return Connection(("127.0.0.1", 10051), protocol)


class ConnectionTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_exchange(self):
        server = StubServer()
        await server.start()
        try:
            conn = await Connection.open("127.0.0.1", server.port, 1.0)
            try:
                request = Packet([Metric("h1", "k1", "10")]).encode()
                await conn.write(request, 1.0)
                reply = await conn.read_all(1.0)
            finally:
                conn.close()
            self.assertEqual(reply, make_reply())
            self.assertEqual(server.raw_requests, [request])
        finally:
            await server.stop()

    async def test_connect_timeout(self):
        """ check a connect attempt that never completes times out promptly """

        async def never_connects(*args, **kwargs):
            await asyncio.sleep(10)

        loop = asyncio.get_event_loop()
        with unittest.mock.patch.object(loop, "create_connection", never_connects):
            start = time.monotonic()
            with self.assertLogs("zbxsender.stream.connection", level=logging.ERROR):
                with self.assertRaises(ConnectTimeout) as cm:
                    await Connection.open("192.0.2.1", 10051, 0.05)
            elapsed = time.monotonic() - start

        self.assertLess(elapsed, 0.2)
        self.assertEqual(cm.exception.timeout, 0.05)
        self.assertEqual(cm.exception.phase, "connect")
        self.assertIn("0.05", str(cm.exception))

    async def test_connect_refused(self):
        port = unused_port()
        with self.assertLogs("zbxsender.stream.connection", level=logging.ERROR):
            with self.assertRaises(ConnectFailure) as cm:
                await Connection.open("127.0.0.1", port, 1.0)
        self.assertNotIsInstance(cm.exception, ConnectTimeout)
        self.assertEqual(cm.exception.addr, ("127.0.0.1", port))

    async def test_read_timeout(self):
        # A server that accepts the request but never replies
        server = StubServer(lambda request: None)
        await server.start()
        try:
            conn = await Connection.open("127.0.0.1", server.port, 1.0)
            try:
                await conn.write(Packet([Metric("h", "k", 1)]).encode(), 1.0)
                with self.assertLogs("zbxsender.stream.connection", level=logging.ERROR):
                    with self.assertRaises(ReadTimeout) as cm:
                        await conn.read_all(0.05)
            finally:
                conn.close()
            self.assertEqual(cm.exception.phase, "read")
        finally:
            await server.stop()

    async def test_read_failure(self):
        conn = create_connection_with_mock_transport()
        conn.protocol.connection_lost(ConnectionResetError("reset by peer"))
        with self.assertLogs("zbxsender.stream.connection", level=logging.ERROR):
            with self.assertRaises(ReadFailure) as cm:
                await conn.read_all(1.0)
        self.assertIn("reset by peer", str(cm.exception))
        conn.close()

    async def test_write_timeout(self):
        conn = create_connection_with_mock_transport()
        conn.protocol.pause_writing()
        with self.assertLogs("zbxsender.stream.connection", level=logging.ERROR):
            with self.assertRaises(WriteTimeout):
                await conn.write(b"data", 0.05)
        conn.close()

    async def test_write_failure(self):
        conn = create_connection_with_mock_transport()
        conn.protocol.pause_writing()

        async def lose_connection():
            await asyncio.sleep(0.01)
            conn.protocol.connection_lost(BrokenPipeError("broken pipe"))

        asyncio.ensure_future(lose_connection())
        with self.assertLogs("zbxsender.stream.connection", level=logging.ERROR):
            with self.assertRaises(WriteFailure):
                await conn.write(b"data", 1.0)
        conn.close()

    async def test_write_on_closed_connection(self):
        conn = create_connection_with_mock_transport()
        conn.protocol.connection_lost(None)
        with self.assertLogs("zbxsender.stream.connection", level=logging.ERROR):
            with self.assertRaises(WriteFailure):
                await conn.write(b"data", 1.0)
        conn.close()

    async def test_close_is_idempotent(self):
        conn = create_connection_with_mock_transport()
        conn.close()
        conn.close()
        self.assertTrue(conn.protocol.reply.cancelled())


if __name__ == "__main__":
    unittest.main()
