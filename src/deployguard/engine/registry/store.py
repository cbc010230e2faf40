"""Registry store -- the single owner of the live registry file.

The file's top-level shape is ``{"<registry_key>": {"<name>": {...}, ...}}``;
other top-level keys are preserved untouched.  Reads auto-create an empty
document when the file is absent.  Writes validate the whole document first
and then replace the file atomically, so a failed write leaves the previous
bytes in place.
"""
from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

import structlog

from deployguard.domain.entities.service_descriptor import RegistryDocument
from deployguard.engine.registry.validation import validate_document
from deployguard.shared.exceptions import RegistryCorruptError, ValidationError
from deployguard.shared.fileio import atomic_write_json

logger = structlog.get_logger(__name__)

DEFAULT_REGISTRY_KEY = "mcpServers"


class RegistryStore:
    """Reads, validates and atomically writes the registry document.

    Args:
        path: Location of the registry file.
        registry_key: Top-level key holding the entry mapping.
    """

    def __init__(self, path: Path, registry_key: str = DEFAULT_REGISTRY_KEY) -> None:
        self.path = path
        self.registry_key = registry_key

    def exists(self) -> bool:
        return self.path.is_file()

    def _parse(self, raw: str) -> RegistryDocument:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise RegistryCorruptError(
                f"Registry file is not valid JSON: {exc}",
                context={"path": str(self.path)},
            ) from exc
        if not isinstance(data, dict):
            raise RegistryCorruptError("Registry file must contain a JSON object", context={"path": str(self.path)})
        entries = data.get(self.registry_key, {})
        if entries is None:
            entries = {}
        if not isinstance(entries, dict):
            raise RegistryCorruptError(
                f"Registry key '{self.registry_key}' must map names to entries",
                context={"path": str(self.path)},
            )
        return RegistryDocument.from_json_obj({**data, self.registry_key: entries}, self.registry_key)

    def _read_sync(self) -> RegistryDocument:
        if not self.exists():
            document = RegistryDocument()
            atomic_write_json(self.path, document.to_json_obj(self.registry_key))
            logger.info("registry_created", path=str(self.path))
            return document
        return self._parse(self.path.read_text(encoding="utf-8"))

    async def read(self) -> RegistryDocument:
        """Return the current document, creating an empty one on first use.

        Raises:
            RegistryCorruptError: The file exists but is not a registry document.
        """
        return await asyncio.to_thread(self._read_sync)

    async def write(self, document: RegistryDocument) -> None:
        """Validate *document* and atomically replace the registry file.

        Raises:
            ValidationError: One or more entries are invalid.  Nothing is written.
        """
        violations = validate_document(document)
        if violations:
            logger.warning("registry_write_rejected", path=str(self.path), violations=violations)
            raise ValidationError(
                f"Registry document has {len(violations)} violation(s); nothing was written",
                violations=violations,
                context={"path": str(self.path)},
            )
        await asyncio.to_thread(atomic_write_json, self.path, document.to_json_obj(self.registry_key))
        logger.info("registry_written", path=str(self.path), entry_count=len(document.entries))

    async def list_entries(self) -> list[dict[str, Any]]:
        """Return every entry as ``{"name": ..., **body}``, sorted by name."""
        document = await self.read()
        return [
            {"name": name, **(body if isinstance(body, dict) else {"invalid": body})}
            for name, body in sorted(document.entries.items())
        ]
