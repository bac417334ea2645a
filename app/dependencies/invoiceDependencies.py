from datetime import date
from typing import Annotated, Callable
from fastapi import Depends
from app.dependencies.dbDependecies import async_db_dependency
from app.modules.invoices.actions import InvoiceActions, utc_today
from app.modules.invoices.cache import ViewCache, view_cache
from app.modules.invoices.repository import InvoiceRepository, SqlInvoiceRepository


def get_invoice_repository(db: async_db_dependency) -> InvoiceRepository:
    return SqlInvoiceRepository(db)


def get_view_cache() -> ViewCache:
    return view_cache


def get_clock() -> Callable[[], date]:
    return utc_today


def get_invoice_actions(
    repository: Annotated[InvoiceRepository, Depends(get_invoice_repository)],
    cache: Annotated[ViewCache, Depends(get_view_cache)],
    clock: Annotated[Callable[[], date], Depends(get_clock)]
) -> InvoiceActions:
    return InvoiceActions(repository, cache, clock=clock)


invoice_repository_dependency = Annotated[InvoiceRepository, Depends(get_invoice_repository)]
view_cache_dependency = Annotated[ViewCache, Depends(get_view_cache)]
invoice_actions_dependency = Annotated[InvoiceActions, Depends(get_invoice_actions)]
