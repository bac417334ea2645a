from app.database.database import Base
from sqlalchemy import Column, Integer, String, Date, CheckConstraint
from uuid import uuid4
import enum


class InvoiceStatus(str, enum.Enum):
    PENDING = "pending"  # Emitida, pendiente de pago
    PAID = "paid"        # Pagada


def generate_invoice_id() -> str:
    return str(uuid4())


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(String(36), primary_key=True, default=generate_invoice_id)

    # Customers live outside this module; only the reference is stored
    customer_id = Column(String(36), nullable=False, index=True)

    # Minor currency units (cents)
    amount = Column(Integer, nullable=False)
    status = Column(String(16), nullable=False, default=InvoiceStatus.PENDING.value)

    # Issue date, set once at creation
    date = Column(Date, nullable=False)

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_invoices_amount_positive"),
        CheckConstraint("status IN ('pending', 'paid')", name="ck_invoices_status"),
    )

    def __repr__(self) -> str:
        return f"<Invoice {self.id} {self.status} {self.amount}>"
