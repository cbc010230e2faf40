"""Global policy store and gate."""
from deployguard.engine.enforcer.policy_gate import PolicyGate, evaluate_policy
from deployguard.engine.enforcer.policy_store import PolicyStore

__all__ = ["PolicyGate", "PolicyStore", "evaluate_policy"]
