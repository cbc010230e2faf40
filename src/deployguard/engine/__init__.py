"""Engine layer: scanner, enforcer, registry, backup and orchestrator."""
