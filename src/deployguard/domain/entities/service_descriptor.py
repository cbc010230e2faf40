"""Registry entry and registry document entities.

A :class:`ServiceDescriptor` is the typed form of one registry entry as a
caller supplies it.  The :class:`RegistryDocument` keeps entries in their
raw JSON form so that a registry edited by hand (or by another tool) can
always be read, listed and backed up; validation happens on write.
"""
from __future__ import annotations

import copy
from typing import Any

from pydantic import BaseModel, Field


class ServiceDescriptor(BaseModel):
    """One launchable service entry.

    Attributes:
        name: Unique key of the entry within the registry.
        command: Launch executable or interpreter.
        args: Ordered command-line arguments.
        env: Optional environment variables for the launched process.
        disabled: Whether the host should skip launching this entry.
        auto_approve: Capability names the host may invoke without prompting.
    """

    name: str = Field(..., min_length=1, max_length=200)
    command: str = Field(..., min_length=1)
    args: list[str] = Field(default_factory=list)
    env: dict[str, str] | None = None
    disabled: bool = False
    auto_approve: list[str] | None = Field(default=None, alias="autoApprove")

    model_config = {"populate_by_name": True, "extra": "allow"}

    def to_registry(self) -> dict[str, Any]:
        """Return the entry body as stored under its name in the registry."""
        return self.model_dump(by_alias=True, exclude={"name"}, exclude_none=True)

    @classmethod
    def from_registry(cls, name: str, raw: dict[str, Any]) -> ServiceDescriptor:
        """Build a descriptor from a raw registry entry body."""
        return cls.model_validate({**raw, "name": name})


class RegistryDocument(BaseModel):
    """The whole registry file.

    Attributes:
        entries: Raw entry bodies keyed by service name.
        extra: Any other top-level keys in the file, preserved verbatim.
    """

    entries: dict[str, Any] = Field(default_factory=dict)
    extra: dict[str, Any] = Field(default_factory=dict)

    def has(self, name: str) -> bool:
        return name in self.entries

    def get(self, name: str) -> Any:
        entry = self.entries.get(name)
        return copy.deepcopy(entry) if entry is not None else None

    def with_entry(self, descriptor: ServiceDescriptor) -> RegistryDocument:
        """Return a copy of this document with *descriptor* inserted or replaced."""
        entries = copy.deepcopy(self.entries)
        entries[descriptor.name] = descriptor.to_registry()
        return RegistryDocument(entries=entries, extra=copy.deepcopy(self.extra))

    def without_entry(self, name: str) -> RegistryDocument:
        """Return a copy of this document with *name* removed."""
        entries = {k: copy.deepcopy(v) for k, v in self.entries.items() if k != name}
        return RegistryDocument(entries=entries, extra=copy.deepcopy(self.extra))

    def to_json_obj(self, registry_key: str) -> dict[str, Any]:
        """Serialise to the on-disk top-level shape."""
        return {**copy.deepcopy(self.extra), registry_key: copy.deepcopy(self.entries)}

    @classmethod
    def from_json_obj(cls, data: dict[str, Any], registry_key: str) -> RegistryDocument:
        extra = {k: v for k, v in data.items() if k != registry_key}
        return cls(entries=dict(data.get(registry_key) or {}), extra=extra)
