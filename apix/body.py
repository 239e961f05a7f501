"""apix body - the rendered request body: JSON value, raw text or a file to stream."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from apix.errors import IoError, SerializationError


@dataclass(frozen=True)
class JsonBody:
    value: Any


@dataclass(frozen=True)
class StringBody:
    text: str


@dataclass(frozen=True)
class FileBody:
    path: str


AdvancedBody = JsonBody | StringBody | FileBody


def body_to_string(body: AdvancedBody | None) -> str:
    """Return the body as text (reads the whole file for FileBody)."""
    if body is None:
        return ""
    if isinstance(body, JsonBody):
        try:
            return json.dumps(body.value)
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Could not serialize JSON body: {e}") from e
    if isinstance(body, StringBody):
        return body.text
    try:
        return Path(body.path).read_text()
    except OSError as e:
        raise IoError(body.path, "Could not read file") from e
