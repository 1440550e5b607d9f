# JSON documents — schema-validated files in the user config dir.
# Created: 2026-02-21
#
# Every persisted document (oauth.json, models.json, tools.json, settings.json,
# config.json) goes through JsonDocument: defaults on a missing or corrupt
# file, validation before every write, atomic replace, optional owner-only mode.

from __future__ import annotations

import asyncio
import json
import logging
import os
import stat
import tempfile
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class CamelModel(BaseModel):
    """Base for persisted records: snake_case in Python, camelCase on disk."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JsonDocument(Generic[ModelT]):
    """A single JSON file bound to a pydantic schema.

    ``load()`` never raises for bad content: a missing, unparsable or
    schema-invalid file yields ``model()`` defaults. ``save()`` re-validates
    and raises ``ValidationError`` on invalid data, leaving the file as is.

    Use ``transaction()`` for read-modify-write so concurrent updaters of the
    same document are linearized.
    """

    def __init__(self, path: Path, model: type[ModelT], *, private: bool = False):
        self.path = Path(path)
        self.model = model
        self.private = private
        self._lock = asyncio.Lock()

    async def load(self) -> ModelT:
        return await asyncio.to_thread(self._read)

    async def save(self, data: ModelT) -> None:
        async with self._lock:
            await self._write(data)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[ModelT]:
        """Yield the current document; persist it when the block exits cleanly."""
        async with self._lock:
            data = await asyncio.to_thread(self._read)
            yield data
            await self._write(data)

    async def _write(self, data: ModelT) -> None:
        # Round-trip through the schema: catches in-place mutations that
        # bypassed validation.
        validated = self.model.model_validate(data.model_dump(by_alias=True))
        payload = validated.model_dump_json(by_alias=True, exclude_none=True, indent=2)
        await asyncio.to_thread(self._write_text, payload)

    def _read(self) -> ModelT:
        if not self.path.exists():
            return self.model()
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return self.model.model_validate(raw)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning("Ignoring unreadable %s, using defaults: %s", self.path.name, e)
            return self.model()

    def _write_text(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
            if self.private:
                os.chmod(tmp_name, stat.S_IRUSR | stat.S_IWUSR)
            else:
                os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Wrote %s", self.path)
