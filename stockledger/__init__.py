"""Inventory stock ledger.

The ledger of stock movements is the source of truth; ``Item.current_stock``
is a materialized balance kept in lock-step with it by
``stockledger.services.reconciler``. The HTTP application lives in
``stockledger.main``.
"""

__version__ = "0.1.0"
