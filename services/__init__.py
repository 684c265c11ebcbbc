"""services package"""

__all__ = [
    "fee_reconciler",
    "fees_id_generator",
    "ledger",
    "money",
    "payment_allocator",
    "payment_errors",
    "receipt_number_generator",
    "settings_service",
]
