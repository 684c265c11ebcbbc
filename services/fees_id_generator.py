from uuid import uuid4


def generate_fee_id() -> str:
    """
    Generate a fee ID in the format FEE-XXXXXXXX from a random hex token.
    """
    return f"FEE-{uuid4().hex[:8]}"


def generate_installment_id(fee_id: str, installment_no: int) -> str:
    """Installment IDs embed the owning fee, e.g. FEE-1a2b3c4d-03."""
    return f"{fee_id}-{installment_no:02d}"
