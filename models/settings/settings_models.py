from sqlalchemy import Column, String, Integer, DateTime
from datetime import datetime
from db import Base


# Receipt counters
RECEIPT_TYPE_FEE = "fee"
RECEIPT_TYPE_INSTALLMENT = "installment"
RECEIPT_TYPES = (RECEIPT_TYPE_FEE, RECEIPT_TYPE_INSTALLMENT)

# Receipt number formats
FORMAT_AUTO = "auto"
FORMAT_SEQUENTIAL = "sequential"
FORMAT_YEAR = "year"
FORMAT_SHORT_YEAR = "short-year"
FORMAT_CUSTOM = "custom"
FORMAT_STUDENT_SEQUENTIAL = "student-sequential"
RECEIPT_FORMATS = (
    FORMAT_AUTO,
    FORMAT_SEQUENTIAL,
    FORMAT_YEAR,
    FORMAT_SHORT_YEAR,
    FORMAT_CUSTOM,
    FORMAT_STUDENT_SEQUENTIAL,
)


class SchoolSettings(Base):
    __tablename__ = "school_settings"

    school_id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=True)

    receipt_number_format = Column(String, nullable=False, default=FORMAT_AUTO)
    receipt_number_prefix = Column(String, nullable=False, default="")
    receipt_number_counter = Column(Integer, nullable=False, default=1)
    receipt_number_year = Column(Integer, nullable=True)

    installment_receipt_number_format = Column(String, nullable=False, default=FORMAT_AUTO)
    installment_receipt_number_prefix = Column(String, nullable=False, default="")
    installment_receipt_number_counter = Column(Integer, nullable=False, default=1)
    installment_receipt_number_year = Column(Integer, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<SchoolSettings(school_id={self.school_id})>"


def counter_columns(receipt_type: str):
    """Attribute names holding (format, prefix, counter, year) for a receipt type."""
    if receipt_type == RECEIPT_TYPE_INSTALLMENT:
        return (
            "installment_receipt_number_format",
            "installment_receipt_number_prefix",
            "installment_receipt_number_counter",
            "installment_receipt_number_year",
        )
    return (
        "receipt_number_format",
        "receipt_number_prefix",
        "receipt_number_counter",
        "receipt_number_year",
    )
