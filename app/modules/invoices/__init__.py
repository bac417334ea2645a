"""
Módulo de Facturación (Invoices)

Acciones de formulario del panel de facturas:

- Crear factura (valida, guarda y redirige al listado)
- Actualizar cliente, monto y estado de una factura existente
- Eliminar factura
- Listado en caché, invalidado por cada acción exitosa

Los montos se guardan en unidades menores (centavos) y el estado es
'pending' o 'paid'.

Tablas principales:
- invoices: Facturas
"""

from .models import Invoice
from .schemas import InvoiceForm, InvoiceOut, State, FieldErrors, validate_invoice_form
from .actions import InvoiceActions, Redirected
from .repository import InvoiceRepository, SqlInvoiceRepository
from .cache import ViewCache

__all__ = [
    "Invoice",
    "InvoiceForm", "InvoiceOut", "State", "FieldErrors", "validate_invoice_form",
    "InvoiceActions", "Redirected",
    "InvoiceRepository", "SqlInvoiceRepository",
    "ViewCache",
]
