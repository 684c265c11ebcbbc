from sqlalchemy import Column, String, Numeric, Date, DateTime, ForeignKey, Index
from datetime import datetime
from decimal import Decimal
from db import Base


# Fee.status values
FEE_UNPAID = "unpaid"
FEE_PARTIAL = "partial"
FEE_PAID = "paid"

# Installment.status values
INSTALLMENT_UNPAID = "unpaid"
INSTALLMENT_UPCOMING = "upcoming"
INSTALLMENT_OVERDUE = "overdue"
INSTALLMENT_PARTIAL = "partial"
INSTALLMENT_PAID = "paid"

INSTALLMENT_STATUSES = (
    INSTALLMENT_UNPAID,
    INSTALLMENT_UPCOMING,
    INSTALLMENT_OVERDUE,
    INSTALLMENT_PARTIAL,
    INSTALLMENT_PAID,
)

PAYMENT_METHODS = ("cash", "visa", "check", "bank-transfer", "other")


class Fee(Base):
    __tablename__ = "fees"

    fee_id = Column(String, primary_key=True, index=True)
    school_id = Column(String, nullable=False, index=True)
    student_id = Column(String, nullable=False, index=True)
    fee_type = Column(String, nullable=False, default="tuition")
    amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    discount = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    paid = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    balance = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    status = Column(String, nullable=False, default=FEE_UNPAID)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Fee(fee_id={self.fee_id}, student_id={self.student_id}, status={self.status})>"


class Installment(Base):
    __tablename__ = "installments"
    __table_args__ = (Index("ix_installments_school_receipt", "school_id", "receipt_number"),)

    installment_id = Column(String, primary_key=True, index=True)
    fee_id = Column(String, ForeignKey("fees.fee_id"), nullable=False, index=True)
    school_id = Column(String, nullable=False)
    student_id = Column(String, nullable=False, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    balance = Column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    due_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default=INSTALLMENT_UNPAID)
    receipt_number = Column(String, nullable=True)
    payment_method = Column(String, nullable=True)
    payment_note = Column(String, nullable=True)
    check_number = Column(String, nullable=True)
    paid_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Installment(installment_id={self.installment_id}, fee_id={self.fee_id}, status={self.status})>"
