"""
planmarket/features/entitlements/service.py

Download entitlement policies.

- OpenEntitlement: every well-formed request is granted (development default)
- LedgerEntitlement: granted iff the purchase ledger holds (plan_id, user_id)

`has_access` never raises. A failing ledger lookup is logged and treated as
"no access" so a storage outage cannot hand out documents.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from planmarket.features.entitlements.ledger import PurchaseLedger

logger = logging.getLogger(__name__)

ENTITLEMENT_MODES = ("open", "ledger")


class Entitlement(ABC):
    mode = "base"

    @abstractmethod
    def has_access(self, plan_id: str, user_id: str) -> bool:
        ...


class OpenEntitlement(Entitlement):
    mode = "open"

    def has_access(self, plan_id: str, user_id: str) -> bool:
        return bool(plan_id) and bool(user_id)


class LedgerEntitlement(Entitlement):
    mode = "ledger"

    def __init__(self, ledger: PurchaseLedger):
        self._ledger = ledger

    def has_access(self, plan_id: str, user_id: str) -> bool:
        if not plan_id or not user_id:
            return False
        try:
            return self._ledger.exists(plan_id, user_id)
        except Exception:
            logger.warning(
                "[entitlements] ledger lookup failed, denying access",
                exc_info=True,
                extra={"plan_id": plan_id, "user_id": user_id, "error_code": "entitlement_lookup_failed"},
            )
            return False


def build_entitlement(mode: str, ledger: Optional[PurchaseLedger] = None) -> Entitlement:
    if mode == "open":
        return OpenEntitlement()
    if mode == "ledger":
        if ledger is None:
            raise ValueError("ledger entitlement mode requires a purchase ledger")
        return LedgerEntitlement(ledger)
    raise ValueError(f"Unknown ENTITLEMENT_MODE {mode!r}; expected one of {', '.join(ENTITLEMENT_MODES)}")
