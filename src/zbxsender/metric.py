import enum

from typing import Any, Dict, Optional


class ItemType(enum.Enum):
    """ The server side item kind a metric is reported against.

    Trapper items accept pushed data and are sent as ``sender data``. Active
    items belong to an agent's active checks and are sent as ``agent data``.
    """

    Trapper = 0
    Active = 1


class Metric(object):
    """
    A single measurement reported for an item key on a monitored host.

    The value is always carried as text. The clock is an optional Unix
    timestamp in seconds; when it is not set it is left out of the request
    so the server records the time it received the value.
    """

    def __init__(
        self,
        host: str,
        key: str,
        value: Any,
        clock: Optional[int] = None,
        item_type: ItemType = ItemType.Trapper,
    ):
        """
        :param host: The name of the monitored host the item belongs to.

        :param key: The item key.

        :param value: The measured value. Non string values are converted
          to their string representation.

        :param clock: An optional Unix timestamp, in seconds, of when the
          value was measured.

        :param item_type: The kind of item the value is for. This decides
          which request the metric is sent in. Defaults to a trapper item.
        """
        if not isinstance(item_type, ItemType):
            raise TypeError(f"item_type must be an ItemType, got {item_type!r}")

        self._host = host
        self._key = key
        self._value = value if isinstance(value, str) else str(value)
        self._clock = None if clock is None else int(clock)
        self._item_type = item_type

    @property
    def host(self) -> str:
        return self._host

    @property
    def key(self) -> str:
        return self._key

    @property
    def value(self) -> str:
        return self._value

    @property
    def clock(self) -> Optional[int]:
        return self._clock

    @property
    def item_type(self) -> ItemType:
        return self._item_type

    @property
    def active(self) -> bool:
        return self._item_type is ItemType.Active

    def with_clock(self, clock: int) -> "Metric":
        """ Return a copy of this metric stamped with *clock* """
        return Metric(self._host, self._key, self._value, clock, self._item_type)

    def to_dict(self) -> Dict[str, Any]:
        """ Return the metric as it appears in a request's data list """
        d = {"host": self._host, "key": self._key, "value": self._value}
        if self._clock is not None:
            d["clock"] = self._clock
        return d

    def __eq__(self, other):
        if not isinstance(other, Metric):
            return NotImplemented
        return (
            self._host,
            self._key,
            self._value,
            self._clock,
            self._item_type,
        ) == (other._host, other._key, other._value, other._clock, other._item_type)

    def __hash__(self):
        return hash((self._host, self._key, self._value, self._clock, self._item_type))

    def __repr__(self):
        return (
            f"Metric(host={self._host!r}, key={self._key!r}, value={self._value!r}, "
            f"clock={self._clock!r}, item_type={self._item_type.name})"
        )
