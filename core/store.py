from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import streamlit as st

from core.models import Batch, FinancialEntry, Material, Order, Partner, Transaction

logger = logging.getLogger(__name__)

SESSION_KEY = "recycle_erp_store"


@dataclass
class Store:
    """
    The whole application state for one session.

    Services receive the store explicitly and are the only code that mutates it.
    """

    partners: list[Partner] = field(default_factory=list)
    materials: list[Material] = field(default_factory=list)
    batches: list[Batch] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)
    financial_entries: list[FinancialEntry] = field(default_factory=list)
    orders: list[Order] = field(default_factory=list)

    # ---- lookups ----

    def partner(self, partner_id: Optional[str]) -> Optional[Partner]:
        return next((p for p in self.partners if p.id == partner_id), None)

    def partner_by_code(self, code: str) -> Optional[Partner]:
        return next((p for p in self.partners if p.code == code), None)

    def material(self, material_id: Optional[str]) -> Optional[Material]:
        return next((m for m in self.materials if m.id == material_id), None)

    def material_by_code(self, code: Optional[str]) -> Optional[Material]:
        return next((m for m in self.materials if m.code == code), None)

    def batch(self, batch_id: Optional[str]) -> Optional[Batch]:
        return next((b for b in self.batches if b.id == batch_id), None)

    def batch_by_code(self, code: str) -> Optional[Batch]:
        return next((b for b in self.batches if b.code == code), None)

    def financial_entry(self, entry_id: Optional[str]) -> Optional[FinancialEntry]:
        return next((e for e in self.financial_entries if e.id == entry_id), None)

    def order(self, order_id: Optional[str]) -> Optional[Order]:
        return next((o for o in self.orders if o.id == order_id), None)

    def partner_name(self, partner_id: Optional[str], default: str = "") -> str:
        p = self.partner(partner_id)
        return p.name if p else default

    def material_name(self, code: Optional[str], default: str = "") -> str:
        m = self.material_by_code(code)
        return m.name if m else default

    # ---- wholesale replacement ----

    def replace_with(self, other: "Store") -> None:
        """Substitute every collection with `other`'s (a load is never a merge)."""
        self.partners = list(other.partners)
        self.materials = list(other.materials)
        self.batches = list(other.batches)
        self.transactions = list(other.transactions)
        self.financial_entries = list(other.financial_entries)
        self.orders = list(other.orders)
        logger.info(
            "Store replaced: %d partners, %d materials, %d batches, %d transactions, %d entries, %d orders",
            len(self.partners),
            len(self.materials),
            len(self.batches),
            len(self.transactions),
            len(self.financial_entries),
            len(self.orders),
        )

    def clear(self) -> None:
        self.replace_with(Store())

    def counts(self) -> dict[str, int]:
        return {
            "partners": len(self.partners),
            "materials": len(self.materials),
            "batches": len(self.batches),
            "transactions": len(self.transactions),
            "financial_entries": len(self.financial_entries),
            "orders": len(self.orders),
        }


def get_store() -> Store:
    # One store per browser session; seeded with reference data on first use.
    if SESSION_KEY not in st.session_state:
        from core.services.demo_data import upsert_reference_data

        store = Store()
        upsert_reference_data(store)
        st.session_state[SESSION_KEY] = store
    return st.session_state[SESSION_KEY]
