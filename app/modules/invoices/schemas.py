from pydantic import BaseModel, ConfigDict, Field, ValidationError
from decimal import Decimal
from typing import Optional, List, Dict, Any, Mapping
from datetime import date as calendar_date
from app.modules.invoices.models import InvoiceStatus


# Mensajes por campo mostrados en el formulario
FIELD_ERROR_MESSAGES = {
    "customerId": "Please select a customer.",
    "amount": "Please enter a value greater than $0.",
    "status": "Please select the status of the invoice.",
}

FORM_FIELDS = tuple(FIELD_ERROR_MESSAGES)


# Form Schemas
class InvoiceForm(BaseModel):
    """Campos editables del formulario de factura (id y fecha se omiten)"""
    model_config = ConfigDict(populate_by_name=True)

    customer_id: str = Field(..., alias="customerId", min_length=1)
    amount: Decimal = Field(..., gt=0, allow_inf_nan=False, description="Monto en unidades mayores")
    status: InvoiceStatus


class FieldErrors(BaseModel):
    customerId: Optional[List[str]] = None
    amount: Optional[List[str]] = None
    status: Optional[List[str]] = None


class InvoiceFormValidation(BaseModel):
    success: bool
    data: Optional[InvoiceForm] = None
    errors: Optional[FieldErrors] = None


class State(BaseModel):
    """Estado devuelto al formulario tras ejecutar una acción"""
    errors: Optional[FieldErrors] = None
    message: Optional[str] = None
    # Marca de éxito; no se envía al cliente
    ok: bool = Field(default=False, exclude=True)

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(exclude_none=True)


def validate_invoice_form(form_data: Mapping[str, Any]) -> InvoiceFormValidation:
    """
    Validar los campos crudos del formulario.

    Nunca lanza excepción: los errores se devuelven agrupados por campo,
    con un único mensaje legible por campo.
    """
    raw = {field: form_data.get(field) for field in FORM_FIELDS}
    try:
        data = InvoiceForm.model_validate(raw)
    except ValidationError as e:
        field_errors: Dict[str, List[str]] = {}
        for error in e.errors():
            field = str(error["loc"][0]) if error["loc"] else None
            if field not in FIELD_ERROR_MESSAGES:
                continue
            messages = field_errors.setdefault(field, [])
            if FIELD_ERROR_MESSAGES[field] not in messages:
                messages.append(FIELD_ERROR_MESSAGES[field])
        return InvoiceFormValidation(success=False, errors=FieldErrors(**field_errors))

    return InvoiceFormValidation(success=True, data=data)


# Output Schemas
class InvoiceOut(BaseModel):
    id: str
    customer_id: str
    amount: int
    status: InvoiceStatus
    date: calendar_date

    model_config = ConfigDict(from_attributes=True)


class InvoiceList(BaseModel):
    invoices: List[InvoiceOut]
    limit: int
    offset: int
