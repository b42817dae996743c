from __future__ import annotations

import logging
import threading
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from ..contracts.payment import PaymentState, PendingPayment

logger = logging.getLogger(__name__)


class PaymentLedger:
    """
    In-memory pool of pending payouts.

    Payments live in an arena keyed by id with a secondary index by amount.
    Each payment has its own lock; `claim` is a compare-and-set under it, so two
    receipts can never bind the same payment and one receipt never binds two.
    Readers always get copies, never the stored objects.
    """

    def __init__(self, payments: Iterable[PendingPayment] = ()) -> None:
        self._payments: Dict[str, PendingPayment] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._by_amount: Dict[Decimal, List[str]] = {}
        self._by_receipt: Dict[str, str] = {}  # fingerprint -> payment id
        # порядок захвата: сначала lock платежа, потом _registry_lock
        self._registry_lock = threading.Lock()

        for p in payments:
            self.add(p)

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._payments)

    def add(self, payment: PendingPayment) -> PendingPayment:
        stored = payment.model_copy(deep=True)
        with self._registry_lock:
            if stored.id in self._payments:
                raise ValueError(f"payment already registered: {stored.id}")
            if stored.bound_receipt and stored.bound_receipt in self._by_receipt:
                raise ValueError(f"receipt {stored.bound_receipt[:12]} is already bound")

            self._payments[stored.id] = stored
            self._locks[stored.id] = threading.Lock()
            self._by_amount.setdefault(stored.amount, []).append(stored.id)
            if stored.bound_receipt:
                self._by_receipt[stored.bound_receipt] = stored.id

        logger.debug("payment %s registered (amount=%s, state=%s)", stored.id, stored.amount, stored.state.value)
        return stored.model_copy()

    def get(self, payment_id: str) -> Optional[PendingPayment]:
        lock = self._lock_for(payment_id)
        if lock is None:
            return None
        with lock:
            return self._payments[payment_id].model_copy()

    def all(self) -> List[PendingPayment]:
        with self._registry_lock:
            ids = list(self._payments)
        return [p for p in (self.get(i) for i in ids) if p is not None]

    def find(self, amount: Decimal, *, state: Optional[PaymentState] = None) -> List[PendingPayment]:
        """Payments with exactly this amount (Decimal equality), optionally in one state."""
        with self._registry_lock:
            ids = list(self._by_amount.get(amount, ()))

        out: List[PendingPayment] = []
        for pid in ids:
            p = self.get(pid)
            if p is None:
                continue
            if state is not None and p.state != state:
                continue
            out.append(p)
        return out

    def bound_to(self, fingerprint: str) -> Optional[PendingPayment]:
        with self._registry_lock:
            pid = self._by_receipt.get(fingerprint)
        return self.get(pid) if pid else None

    def claim(self, payment_id: str, fingerprint: str) -> bool:
        """
        Bind `fingerprint` to the payment if it is still awaiting confirmation,
        unbound, and the receipt is not bound elsewhere. Returns False otherwise.
        """
        lock = self._lock_for(payment_id)
        if lock is None:
            raise KeyError(payment_id)

        with lock:
            p = self._payments[payment_id]
            if p.bound_receipt is not None or p.state != PaymentState.AWAITING_CONFIRMATION:
                return False

            with self._registry_lock:
                if fingerprint in self._by_receipt:
                    return False
                self._by_receipt[fingerprint] = payment_id
            p.bound_receipt = fingerprint

        logger.info("payment %s bound to receipt %s", payment_id, fingerprint[:12])
        return True

    def set_state(self, payment_id: str, state: PaymentState) -> PendingPayment:
        lock = self._lock_for(payment_id)
        if lock is None:
            raise KeyError(payment_id)
        with lock:
            p = self._payments[payment_id]
            p.state = state
            return p.model_copy()

    def _lock_for(self, payment_id: str) -> Optional[threading.Lock]:
        with self._registry_lock:
            return self._locks.get(payment_id)
