"""Registry store, validation and advisory locking."""
from deployguard.engine.registry.lock import RegistryLock
from deployguard.engine.registry.store import RegistryStore
from deployguard.engine.registry.validation import validate_document, validate_entry

__all__ = ["RegistryLock", "RegistryStore", "validate_document", "validate_entry"]
