import json
import unittest
from zbxsender import serialization


class SerializationTestCase(unittest.TestCase):
    def test_expected_codecs_are_present(self):
        codecs = serialization.registry.serializers
        for codec_name in ("json", "yaml"):
            with self.subTest(f"Check that {codec_name} is present"):
                self.assertIn(codec_name, codecs)

    def test_expected_codec_attributes(self):
        codecs = serialization.registry.serializers
        for name, settings in codecs.items():
            with self.subTest(f"Check that {name} has expected attributes"):
                for key in ("content_type", "content_encoding", "serializer"):
                    self.assertTrue(hasattr(settings, key))

    def test_fetch_codec_by_name_or_type(self):
        by_name = serialization.registry.get_codec("json")
        by_type = serialization.registry.get_codec(serialization.CONTENT_TYPE_JSON)
        self.assertIs(by_name, by_type)

    def test_register_invalid_serializer(self):
        class InvalidSerializer(object):
            pass

        with self.assertRaises(Exception) as cm:
            serialization.registry.register(
                "invalid",
                InvalidSerializer(),
                content_type="application/invalid",
                content_encoding="utf-8",
            )
        self.assertIn("Expected an instance of ISerializer", str(cm.exception))

    def test_fetch_codec_with_invalid_name_or_type(self):
        with self.assertRaises(Exception) as cm:
            serialization.registry.get_codec("invalid")
        self.assertIn("Invalid serializer", str(cm.exception))

    def test_json_is_compact_utf8(self):
        payload = serialization.dumps({"request": "sender data", "value": "Thé"})
        self.assertEqual(payload, '{"request":"sender data","value":"Thé"}'.encode())

    def test_json_serialization_roundtrip(self):
        json_data = {
            "request": "sender data",
            "data": [{"host": "h1", "key": "k1", "value": "10", "clock": 1}],
            "clock": 1700000000,
        }
        payload = serialization.dumps(json_data, "json")
        self.assertIsInstance(payload, bytes)
        self.assertEqual(json.loads(payload), json_data)
        self.assertEqual(serialization.loads(payload, "json"), json_data)

    def test_yaml_decode(self):
        data = b"server: zbx.example.com\nport: 10051\nread_timeout: 2.5\n"
        self.assertEqual(
            serialization.loads(data, serialization.CONTENT_TYPE_YAML),
            {"server": "zbx.example.com", "port": 10051, "read_timeout": 2.5},
        )

    def test_yaml_serialization_roundtrip(self):
        yaml_data = {"server": "zbx", "port": 10051, "clock": "now"}
        payload = serialization.dumps(yaml_data, "yaml")
        self.assertIsInstance(payload, bytes)
        self.assertEqual(serialization.loads(payload, "yaml"), yaml_data)


if __name__ == "__main__":
    unittest.main()
