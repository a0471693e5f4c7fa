# SPDX-FileCopyrightText: 2024 Swiss Confederation
#
# SPDX-License-Identifier: MIT

"""
Splunk compatible json log output.

Every record is rendered as a single json line. Records whose message is a
`SplunkExtendedLogEntry` additionally get all fields of the entry as top level keys.
"""

import datetime
import json
import logging
from enum import Enum

from pydantic import BaseModel


class SplunkExtendedLogEntry(BaseModel):
    """Base for structured log entries. Use it as the message of a log call."""

    message: str

    def extended_fields(self) -> dict[str, object]:
        """All fields except the message, None values are left out."""
        return self.model_dump(mode="json", exclude={"message"}, exclude_none=True)

    def __str__(self) -> str:
        fields = " ".join(f"{key}={value}" for key, value in self.extended_fields().items())
        return f"{self.message} {fields}" if fields else self.message


class SplunkFormatter(logging.Formatter):
    """Formats records as json objects with the fields expected by splunk."""

    def __init__(self, defaults: dict[str, str] | None = None) -> None:
        super().__init__()
        self._defaults = defaults or {}

    def _attribute(self, record: logging.LogRecord, name: str) -> str | None:
        return getattr(record, name, self._defaults.get(name))

    def format(self, record: logging.LogRecord) -> str:
        content: dict[str, object] = {
            "@timestamp": datetime.datetime.fromtimestamp(record.created).astimezone().isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "message": record.getMessage(),
            "hash": self._attribute(record, "correlation_id"),
            "app": self._attribute(record, "app_name"),
            "logger": record.name,
        }
        if isinstance(record.msg, SplunkExtendedLogEntry):
            content.update(record.msg.extended_fields())
        if record.exc_info:
            content["exception"] = self.formatException(record.exc_info)
        return json.dumps(content, default=_json_default)


def _json_default(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    return str(value)
