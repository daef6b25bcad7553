"""Persist the chat transcript as a single JSON blob on disk."""

import asyncio
import json
import logging
import math
import os
import tempfile
from datetime import (
    date,
    datetime,
    time,
)
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import (
    Any,
    List,
    Sequence,
    Set,
)

from pydantic import (
    BaseModel,
    ValidationError,
)

from auraspend.config import settings
from auraspend.core.schema import (
    TRANSCRIPT_ADAPTER,
    Message,
    ToolCallMessage,
)

logger = logging.getLogger(__name__)

_DROP = object()


# ---------------------------------------------------------------------------
# Sanitizing
# ---------------------------------------------------------------------------
def _json_safe(value: Any, seen: Set[int]) -> Any:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, Enum):
        return _json_safe(value.value, seen)
    if isinstance(value, Decimal):
        return _json_safe(float(value), seen)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return _json_safe(value.model_dump(mode="json"), seen)
    if callable(value):
        return _DROP

    if isinstance(value, (dict, list, tuple, set, frozenset)):
        marker = id(value)
        if marker in seen:
            return _DROP  # cyclic reference
        seen.add(marker)
        try:
            if isinstance(value, dict):
                out = {}
                for key, item in value.items():
                    clean = _json_safe(item, seen)
                    if clean is not _DROP:
                        out[str(key)] = clean
                return out
            # Dropped list members become null so positions are kept.
            items = []
            for item in value:
                clean = _json_safe(item, seen)
                items.append(None if clean is _DROP else clean)
            return items
        finally:
            seen.discard(marker)

    return _DROP


def sanitize(value: Any) -> Any:
    """
    Return a JSON-safe deep copy of *value*.

    Callables, cyclic references and objects with no JSON form are dropped (``None`` when they sit
    inside a list), non-finite floats become ``None``, dates become ISO strings and pydantic models
    are dumped.  The result is round-tripped through ``json`` so what is returned is exactly what a
    reload will see.
    """
    clean = _json_safe(value, set())
    if clean is _DROP:
        return None
    return json.loads(json.dumps(clean))


def serialize_transcript(messages: Sequence[Message]) -> List[dict]:
    """Turn a transcript into a flat, JSON-safe list of dicts."""
    out = []
    for message in messages:
        if isinstance(message, ToolCallMessage):
            # Tool payloads may hold anything the tool layer attached; dump them separately.
            data = message.model_dump(mode="json", exclude={"arguments", "result"})
            data["arguments"] = sanitize(message.arguments) or {}
            data["result"] = sanitize(message.result)
        else:
            data = message.model_dump(mode="json")
        out.append(data)
    return out


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------
class ConversationStore:
    """
    Single named blob holding the JSON-serialized transcript.

    All methods are best-effort: failures are logged and swallowed, because chat history is not
    safety-critical.  File I/O runs in a worker thread so the event loop is never blocked.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    @classmethod
    def named(cls, name: str, data_dir: Path | str | None = None) -> "ConversationStore":
        """Return the store for blob *name* inside *data_dir* (default ``settings.DATA_DIR``)."""
        return cls(Path(data_dir or settings.DATA_DIR) / f"{name}.json")

    # ------------------------------------------------------------------ #
    # Sync helpers (run in a thread)
    # ------------------------------------------------------------------ #
    def _write(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def _read(self) -> str | None:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    async def save(self, messages: Sequence[Message]) -> bool:
        """Persist *messages*; returns False (after logging) if anything went wrong."""
        try:
            payload = json.dumps(serialize_transcript(messages), ensure_ascii=False)
            await asyncio.to_thread(self._write, payload)
        except Exception as exc:  # pylint: disable=broad-except
            logger.error("Error saving chat messages to %s: %s", self.path, exc)
            return False
        logger.debug("Saved %d chat messages to %s", len(messages), self.path)
        return True

    async def load(self) -> List[Message]:
        """Return the persisted transcript, or an empty one if the blob is missing or corrupt."""
        try:
            raw = await asyncio.to_thread(self._read)
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Error reading chat messages from %s: %s", self.path, exc)
            return []
        if raw is None:
            return []
        try:
            return TRANSCRIPT_ADAPTER.validate_json(raw)
        except ValidationError as exc:
            logger.error("Discarding corrupt chat history at %s: %s", self.path, exc)
            return []

    async def clear(self) -> None:
        """Remove the persisted blob."""
        try:
            await asyncio.to_thread(self.path.unlink, missing_ok=True)
        except OSError as exc:
            logger.error("Error clearing chat messages at %s: %s", self.path, exc)
