from fastapi import APIRouter, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, RedirectResponse
from typing import Union

from app.core.config import settings
from app.dependencies.invoiceDependencies import (
    invoice_actions_dependency, invoice_repository_dependency, view_cache_dependency
)
from app.modules.invoices.actions import ActionResult, Redirected
from app.modules.invoices.schemas import InvoiceList, InvoiceOut, State

# Router principal del módulo de facturas
router = APIRouter(prefix=settings.INVOICES_PATH, tags=["Invoices"])


def render_action_result(result: ActionResult) -> Union[JSONResponse, RedirectResponse]:
    """Traducir el resultado de una acción a una respuesta HTTP"""
    if isinstance(result, Redirected):
        return RedirectResponse(result.target, status_code=status.HTTP_303_SEE_OTHER)
    if result.errors is not None:
        return JSONResponse(result.to_response(), status_code=status.HTTP_422_UNPROCESSABLE_ENTITY)
    return JSONResponse(result.to_response(), status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.get("", response_model=InvoiceList)
async def list_invoices(
    repository: invoice_repository_dependency,
    cache: view_cache_dependency,
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0)
):
    """
    Listar facturas (más recientes primero)

    La vista se guarda en caché hasta que una acción la invalida.
    """
    cache_key = f"{settings.INVOICES_PATH}?limit={limit}&offset={offset}"
    cached = cache.get(cache_key)
    if cached is not None:
        return cached

    # Leída antes de consultar: si una acción invalida mientras tanto, no se guarda
    generation = cache.generation(settings.INVOICES_PATH)
    invoices = await repository.list(limit=limit, offset=offset)
    view = InvoiceList(
        invoices=[InvoiceOut.model_validate(invoice) for invoice in invoices],
        limit=limit,
        offset=offset
    )
    cache.set(cache_key, view, generation=generation)
    return view


@router.post("/create")
async def create_invoice(request: Request, actions: invoice_actions_dependency):
    """
    Crear una nueva factura

    Redirige al listado si se guarda; devuelve los errores del formulario si no.
    """
    form_data = await request.form()
    result = await actions.create_invoice(State(), form_data)
    return render_action_result(result)


@router.get("/{invoice_id}", response_model=InvoiceOut)
async def get_invoice(invoice_id: str, repository: invoice_repository_dependency):
    """Obtener una factura para el formulario de edición"""
    invoice = await repository.get(invoice_id)
    if invoice is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Invoice not found"
        )
    return invoice


@router.post("/{invoice_id}/edit")
async def update_invoice(invoice_id: str, request: Request, actions: invoice_actions_dependency):
    form_data = await request.form()
    result = await actions.update_invoice(invoice_id, State(), form_data)
    return render_action_result(result)


@router.post("/{invoice_id}/delete")
async def delete_invoice(invoice_id: str, actions: invoice_actions_dependency):
    """
    Eliminar una factura

    No redirige: el cliente permanece en la vista actual.
    """
    result = await actions.delete_invoice(invoice_id)
    if not result.ok:
        return render_action_result(result)
    return result.to_response()
