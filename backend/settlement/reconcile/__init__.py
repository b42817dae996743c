from .ledger import PaymentLedger
from .matcher import BindingRejected, candidates_for, reconcile, resolve

__all__ = ["PaymentLedger", "BindingRejected", "candidates_for", "reconcile", "resolve"]
