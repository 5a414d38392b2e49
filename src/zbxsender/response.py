import datetime
import logging

from collections import namedtuple
from zbxsender import serialization
from zbxsender.exceptions import AcknowledgementParseFailure, ResponseDecodeFailure
from zbxsender.packet import unframe
from typing import Dict

logger = logging.getLogger(__name__)


STATUS_SUCCESS = "success"
STATUS_FAILED = "failed"

INFO_SEGMENTS = 4


Summary = namedtuple("Summary", ("processed", "failed", "total", "elapsed"))


def parse_info(info: str) -> Summary:
    """ Parse the info text of a sender data acknowledgement.

    The server describes how it handled a request with text such as
    ``processed: 3; failed: 1; total: 4; seconds spent: 0.001234``. Keys
    that are not recognised are ignored.

    :raises AcknowledgementParseFailure: if the text does not hold exactly
      four ``key: value`` segments or a recognised value is not numeric.
    """
    segments = info.split(";")
    if len(segments) != INFO_SEGMENTS:
        raise AcknowledgementParseFailure(
            f"Expected {INFO_SEGMENTS} segments in response info, "
            f"got {len(segments)}: {info!r}"
        )

    fields = {}  # type: Dict[str, str]
    for segment in segments:
        key, sep, value = segment.partition(":")
        if not sep:
            raise AcknowledgementParseFailure(
                f"Malformed response info segment: {segment!r}"
            )
        fields[key.strip()] = value.strip()

    values = {}
    try:
        for name in ("processed", "failed", "total"):
            if name in fields:
                values[name] = int(fields[name])
        if "seconds spent" in fields:
            values["elapsed"] = datetime.timedelta(
                seconds=float(fields["seconds spent"])
            )
    except (ValueError, OverflowError) as exc:
        raise AcknowledgementParseFailure(
            f"Invalid value in response info {info!r}: {exc}"
        ) from exc

    return Summary(
        processed=values.get("processed", 0),
        failed=values.get("failed", 0),
        total=values.get("total", 0),
        elapsed=values.get("elapsed", datetime.timedelta(0)),
    )


class Response(object):
    """
    The server's acknowledgement of a request.

    The status is the raw ``response`` field (``success`` or ``failed``) and
    info is the raw ``info`` text, if the server sent any.
    """

    def __init__(self, status: str, info: str = ""):
        self._status = status
        self._info = info

    @classmethod
    def decode(cls, data: bytes) -> "Response":
        """ Decode a complete framed reply read from the server.

        :raises ProtocolHeaderMismatch: if the reply does not start with the
          protocol header.

        :raises ResponseDecodeFailure: if the payload is not a JSON object
          with a string ``response`` field.
        """
        payload = unframe(data)
        try:
            body = serialization.loads(payload, "json")
        except ValueError as exc:
            # UnicodeDecodeError and JSONDecodeError are both ValueErrors
            raise ResponseDecodeFailure(f"Invalid response body: {exc}") from exc

        if not isinstance(body, dict):
            raise ResponseDecodeFailure(
                f"Expected a JSON object in response, got {type(body).__name__}"
            )

        status = body.get("response")
        if not isinstance(status, str):
            raise ResponseDecodeFailure(
                f"Missing or invalid 'response' field in response: {body}"
            )

        info = body.get("info", "")
        if not isinstance(info, str):
            raise ResponseDecodeFailure(f"Invalid 'info' field in response: {body}")

        return cls(status, info)

    @property
    def status(self) -> str:
        return self._status

    @property
    def info(self) -> str:
        return self._info

    @property
    def success(self) -> bool:
        return self._status == STATUS_SUCCESS

    def summary(self) -> Summary:
        """ Return the processed/failed/total counts reported by the server.

        :raises AcknowledgementParseFailure: if the status is not
          ``success`` or the info text is malformed.
        """
        if not self.success:
            raise AcknowledgementParseFailure(
                f"Response status is '{self._status}', not '{STATUS_SUCCESS}'"
            )
        return parse_info(self._info)

    def __repr__(self):
        return f"Response(status={self._status!r}, info={self._info!r})"
