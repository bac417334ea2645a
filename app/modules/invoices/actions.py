from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Callable, Mapping, Optional, Union
import logging

from app.core.config import settings
from app.modules.invoices.cache import ViewCache
from app.modules.invoices.repository import InvoiceRepository
from app.modules.invoices.schemas import State, validate_invoice_form

logger = logging.getLogger(__name__)


CREATE_VALIDATION_MESSAGE = "Missing Fields. Invoice Creation Failed."
UPDATE_VALIDATION_MESSAGE = "Missing Fields. Invoice Update Failed."
CREATE_DATABASE_ERROR = "Database Error: Failed to Create Invoice."
UPDATE_DATABASE_ERROR = "Database Error: Failed to Update Invoice."
DELETE_DATABASE_ERROR = "Database Error: Failed to Delete Invoice."
DELETED_MESSAGE = "Invoice Deleted."


@dataclass(frozen=True)
class Redirected:
    """Resultado terminal: la acción terminó y el cliente debe navegar a ``target``"""
    target: str


ActionResult = Union[State, Redirected]


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def to_minor_units(amount: Decimal, minor_units: Optional[int] = None) -> int:
    """Convertir un monto en unidades mayores a entero en unidades menores (centavos)"""
    factor = minor_units if minor_units is not None else settings.CURRENCY_MINOR_UNITS
    return int((Decimal(amount) * factor).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class InvoiceActions:
    """
    Acciones de formulario para facturas: crear, actualizar y eliminar.

    Cada llamada es independiente: valida, persiste una sola fila y, si todo
    sale bien, invalida la vista del listado. Los errores de validación y de
    base de datos se devuelven como ``State``; nunca se propagan.
    """

    def __init__(
        self,
        repository: InvoiceRepository,
        cache: ViewCache,
        clock: Callable[[], date] = utc_today,
        invoices_path: Optional[str] = None
    ):
        self.repository = repository
        self.cache = cache
        self.clock = clock
        self.invoices_path = invoices_path or settings.INVOICES_PATH

    async def create_invoice(self, prev_state: Optional[State], form_data: Mapping[str, Any]) -> ActionResult:
        """Crear una factura a partir de los campos del formulario"""
        validation = validate_invoice_form(form_data)
        if not validation.success:
            logger.info(f"Invoice creation rejected: {validation.errors.model_dump(exclude_none=True)}")
            return State(errors=validation.errors, message=CREATE_VALIDATION_MESSAGE)

        data = validation.data
        amount_in_cents = to_minor_units(data.amount)
        issued_on = self.clock()

        try:
            invoice_id = await self.repository.create(
                customer_id=data.customer_id,
                amount=amount_in_cents,
                status=data.status.value,
                issued_on=issued_on
            )
        except Exception:
            logger.exception("Failed to create invoice")
            return State(message=CREATE_DATABASE_ERROR)

        logger.info(f"Invoice {invoice_id} created for customer {data.customer_id}: {amount_in_cents} ({data.status.value})")
        self.cache.revalidate_path(self.invoices_path)
        return Redirected(self.invoices_path)

    async def update_invoice(self, invoice_id: str, prev_state: Optional[State], form_data: Mapping[str, Any]) -> ActionResult:
        """Actualizar cliente, monto y estado; id y fecha no cambian"""
        validation = validate_invoice_form(form_data)
        if not validation.success:
            logger.info(f"Invoice {invoice_id} update rejected: {validation.errors.model_dump(exclude_none=True)}")
            return State(errors=validation.errors, message=UPDATE_VALIDATION_MESSAGE)

        data = validation.data
        amount_in_cents = to_minor_units(data.amount)

        try:
            updated = await self.repository.update(
                invoice_id,
                customer_id=data.customer_id,
                amount=amount_in_cents,
                status=data.status.value
            )
        except Exception:
            logger.exception(f"Failed to update invoice {invoice_id}")
            return State(message=UPDATE_DATABASE_ERROR)

        if not updated:
            logger.warning(f"Update matched no invoice with id {invoice_id}")
        else:
            logger.info(f"Invoice {invoice_id} updated: {amount_in_cents} ({data.status.value})")

        self.cache.revalidate_path(self.invoices_path)
        return Redirected(self.invoices_path)

    async def delete_invoice(self, invoice_id: str) -> State:
        try:
            deleted = await self.repository.delete(invoice_id)
        except Exception:
            logger.exception(f"Failed to delete invoice {invoice_id}")
            return State(message=DELETE_DATABASE_ERROR)

        if not deleted:
            logger.warning(f"Delete matched no invoice with id {invoice_id}")
        else:
            logger.info(f"Invoice {invoice_id} deleted")

        self.cache.revalidate_path(self.invoices_path)
        return State(message=DELETED_MESSAGE, ok=True)
