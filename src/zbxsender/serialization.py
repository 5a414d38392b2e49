import abc
import json

from collections import namedtuple
from typing import Any

import yaml


CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_YAML = "application/yaml"


codec = namedtuple("codec", ("content_type", "content_encoding", "serializer"))


class ISerializer(abc.ABC):
    """
    This class represents the base interface for a serializer.
    """

    @abc.abstractmethod  # pragma: no branch
    def encode(self, data, **kwargs):
        """ Returns serialized data as a bytes object. """

    @abc.abstractmethod  # pragma: no branch
    def decode(self, data, **kwargs):
        """ Returns deserialized data """


class SerializerRegistry(object):
    """ This registry keeps track of serialization strategies.

    A convenience name (e.g. ``json``) or a content-type string is mapped to
    an encoder and decoder. Packet bodies and server replies use the JSON
    codec, configuration files use the YAML codec.
    """

    def __init__(self):
        self._serializers = {}
        self.type_to_name = {}
        self.name_to_type = {}

    @property
    def serializers(self):
        """ Return a dict of the available serializers (codecs) """
        return self._serializers

    def register(
        self,
        name: str,
        serializer: ISerializer,
        content_type: str,
        content_encoding: str = "utf-8",
    ):
        """ Register a new serializer.

        :param name: A convenience name for the serialization method.

        :param serializer: An object that implements the ISerializer interface
          that can encode objects and decode data back into the original object.

        :param content_type: The mime-type describing the serialized structure.

        :param content_encoding: The content encoding (character set) that
          the decoder method will be returning.
        """
        if not isinstance(serializer, ISerializer):
            raise Exception(
                f"Invalid serializer '{name}'. Expected an instance of ISerializer"
            )

        self._serializers[name] = codec(content_type, content_encoding, serializer)

        # map convenience name to mime-type and back again.
        self.type_to_name[content_type] = name
        self.name_to_type[name] = content_type

    def get_codec(self, name_or_type: str):
        """ Return a codec by convenience name or content-type """
        name = self.type_to_name.get(name_or_type, name_or_type)
        try:
            return self._serializers[name]
        except KeyError:
            raise Exception(f"Invalid serializer '{name_or_type}'") from None

    def get_serializer(self, name_or_type: str) -> ISerializer:
        return self.get_codec(name_or_type).serializer

    def dumps(self, data: Any, serialization: str = "json", **kwargs) -> bytes:
        """ Encode data.

        :param data: The data structure to serialize.

        :param serialization: The convenience name or content-type of the
          serialization strategy to apply. Defaults to ``json``.

        :returns: the serialized data as bytes.
        """
        return self.get_serializer(serialization).encode(data, **kwargs)

    def loads(self, data: bytes, serialization: str = "json", **kwargs) -> Any:
        """ Decode serialized data.

        :param data: The data to deserialize.

        :param serialization: The convenience name or content-type of the
          serialization strategy that produced *data*. Defaults to ``json``.

        Raises:
            Exception: If the serialization method requested is not available.
        Returns:
            The deserialized data.
        """
        return self.get_serializer(serialization).decode(data, **kwargs)


def register_json(registry: SerializerRegistry) -> None:
    """ Register an encoder/decoder for JSON serialization. """

    class JsonSerializer(ISerializer):
        def encode(self, data: Any, **kwargs) -> bytes:
            """ Encode an object into compact JSON and return a :class:`bytes` object.

            The server does not need whitespace between tokens so none is
            emitted, which keeps the frame length field small and exact.

            :returns: a serialized message as a bytes object.
            """
            return json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode(
                "utf-8"
            )

        def decode(self, data: bytes, **kwargs) -> Any:
            """ Decode *data* from :class:`bytes` to the original data structure.

            :param data: a bytes object containing a serialized message.

            :returns: A Python object.
            """
            data = data if isinstance(data, str) else data.decode("utf-8")
            return json.loads(data)

    serializer = JsonSerializer()
    registry.register(
        "json", serializer, content_type=CONTENT_TYPE_JSON, content_encoding="utf-8"
    )


def register_yaml(registry: SerializerRegistry) -> None:
    """ Register an encoder/decoder for YAML serialization.

    Only used for configuration files, which people write by hand.
    """

    class YamlSerializer(ISerializer):
        def encode(self, data: Any, **kwargs) -> bytes:
            """ Encode an object into YAML and return a :class:`bytes` object.

            :returns: a serialized message as a bytes object.
            """
            return yaml.safe_dump(data, default_flow_style=False).encode("utf-8")

        def decode(self, data: bytes, **kwargs) -> Any:
            """ Decode *data* from :class:`bytes` to the original data structure.

            :param data: a bytes object containing a serialized message.

            :returns: A Python object.
            """
            data = data if isinstance(data, str) else data.decode("utf-8")
            return yaml.safe_load(data)

    serializer = YamlSerializer()
    registry.register(
        "yaml", serializer, content_type=CONTENT_TYPE_YAML, content_encoding="utf-8"
    )


registry = SerializerRegistry()
register_json(registry)
register_yaml(registry)

dumps = registry.dumps
loads = registry.loads
