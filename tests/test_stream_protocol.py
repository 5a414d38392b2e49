import asyncio
import unittest
import unittest.mock

from zbxsender.stream.protocol import SenderProtocol


def create_transport_mock():
    transport_mock = unittest.mock.Mock()
    transport_mock.is_closing.return_value = False
    transport_mock.get_extra_info.return_value = ("127.0.0.1", 10051)
    return transport_mock


class SenderProtocolTestCase(unittest.IsolatedAsyncioTestCase):
    async def test_connection_made(self):
        p = SenderProtocol()
        p.connection_made(create_transport_mock())
        self.assertEqual(p.raddr, ("127.0.0.1", 10051))
        self.assertIsInstance(p.identity, bytes)
        self.assertTrue(p.identity)

    async def test_ipv6_addresses_are_reduced_to_host_port(self):
        transport_mock = create_transport_mock()
        transport_mock.get_extra_info.return_value = ("::1", 10051, 0, 0)
        p = SenderProtocol()
        p.connection_made(transport_mock)
        self.assertEqual(p.raddr, ("::1", 10051))

    async def test_reply_is_collected_until_connection_closes(self):
        p = SenderProtocol()
        p.connection_made(create_transport_mock())

        # Deliver the reply one byte at a time
        for b in b"ZBXD\x01reply":
            p.data_received(bytes([b]))
        self.assertFalse(p.reply.done())

        self.assertFalse(p.eof_received())
        p.connection_lost(None)
        self.assertEqual(await p.reply, b"ZBXD\x01reply")

    async def test_connection_lost_with_error(self):
        p = SenderProtocol()
        p.connection_made(create_transport_mock())
        p.data_received(b"partial")
        p.connection_lost(ConnectionResetError("reset by peer"))
        with self.assertRaises(ConnectionResetError):
            await p.reply

    async def test_send_writes_to_transport(self):
        transport_mock = create_transport_mock()
        p = SenderProtocol()
        p.connection_made(transport_mock)
        p.send(b"ZBXD\x01")
        transport_mock.write.assert_called_once_with(b"ZBXD\x01")

    async def test_send_on_closed_connection(self):
        p = SenderProtocol()
        with self.assertRaises(ConnectionResetError):
            p.send(b"data")

    async def test_drain_waits_for_resume(self):
        p = SenderProtocol()
        p.connection_made(create_transport_mock())

        # Not paused, returns immediately
        await p.drain()

        p.pause_writing()
        drain_task = asyncio.ensure_future(p.drain())
        await asyncio.sleep(0)
        self.assertFalse(drain_task.done())

        p.resume_writing()
        await asyncio.wait_for(drain_task, 1.0)

    async def test_drain_fails_when_connection_is_lost(self):
        p = SenderProtocol()
        p.connection_made(create_transport_mock())
        p.pause_writing()
        drain_task = asyncio.ensure_future(p.drain())
        await asyncio.sleep(0)

        p.connection_lost(BrokenPipeError("broken pipe"))
        with self.assertRaises(BrokenPipeError):
            await drain_task
        # Retrieve the reply exception too
        with self.assertRaises(BrokenPipeError):
            await p.reply

    async def test_close(self):
        transport_mock = create_transport_mock()
        p = SenderProtocol()
        p.close()  # no transport yet, nothing happens
        p.connection_made(transport_mock)
        p.close()
        self.assertTrue(transport_mock.close.called)


if __name__ == "__main__":
    unittest.main()
