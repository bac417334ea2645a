"""Acceso a datos de facturas.

Las acciones reciben un ``InvoiceRepository`` explícito en lugar de usar
una conexión global, de modo que pueden probarse sin base de datos.
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from app.modules.invoices.models import Invoice, InvoiceStatus, generate_invoice_id

logger = logging.getLogger(__name__)


class InvoiceRepository(ABC):
    """Contract for invoice persistence."""

    @abstractmethod
    async def create(self, customer_id: str, amount: int, status: str, issued_on: date) -> str:
        """Insert one invoice row and return its generated id."""
        raise NotImplementedError

    @abstractmethod
    async def update(self, invoice_id: str, customer_id: str, amount: int, status: str) -> int:
        """Update the editable columns of one invoice; returns rows affected."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, invoice_id: str) -> int:
        """Delete one invoice; returns rows affected."""
        raise NotImplementedError

    @abstractmethod
    async def get(self, invoice_id: str) -> Optional[Invoice]:
        raise NotImplementedError

    @abstractmethod
    async def list(self, limit: int = 20, offset: int = 0) -> List[Invoice]:
        raise NotImplementedError


class SqlInvoiceRepository(InvoiceRepository):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(self, customer_id: str, amount: int, status: str, issued_on: date) -> str:
        invoice_id = generate_invoice_id()
        try:
            await self.db.execute(
                insert(Invoice).values(
                    id=invoice_id,
                    customer_id=customer_id,
                    amount=amount,
                    status=InvoiceStatus(status).value,
                    date=issued_on
                )
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return invoice_id

    async def update(self, invoice_id: str, customer_id: str, amount: int, status: str) -> int:
        try:
            result = await self.db.execute(
                update(Invoice)
                .where(Invoice.id == invoice_id)
                .values(
                    customer_id=customer_id,
                    amount=amount,
                    status=InvoiceStatus(status).value
                )
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return result.rowcount

    async def delete(self, invoice_id: str) -> int:
        try:
            result = await self.db.execute(delete(Invoice).where(Invoice.id == invoice_id))
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return result.rowcount

    async def get(self, invoice_id: str) -> Optional[Invoice]:
        result = await self.db.execute(select(Invoice).where(Invoice.id == invoice_id))
        return result.scalar_one_or_none()

    async def list(self, limit: int = 20, offset: int = 0) -> List[Invoice]:
        # Más recientes primero
        result = await self.db.execute(
            select(Invoice)
            .order_by(Invoice.date.desc(), Invoice.id)
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().all())
