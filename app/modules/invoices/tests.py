"""
Tests para el módulo de Facturas

Cubren:
- Validación del formulario (mensajes por campo)
- Conversión de montos a centavos
- Acciones de crear, actualizar y eliminar con un repositorio en memoria
- Repositorio SQL sobre SQLite en memoria (aiosqlite)
- Endpoints HTTP con dependencias sustituidas
"""

import asyncio
import pytest
import pytest_asyncio
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from fastapi.testclient import TestClient
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database.database import Base
from app.dependencies.invoiceDependencies import get_clock, get_invoice_repository, get_view_cache
from app.modules.invoices.actions import (
    InvoiceActions, Redirected, to_minor_units, utc_today,
    CREATE_VALIDATION_MESSAGE, UPDATE_VALIDATION_MESSAGE,
    CREATE_DATABASE_ERROR, UPDATE_DATABASE_ERROR, DELETE_DATABASE_ERROR, DELETED_MESSAGE
)
from app.modules.invoices.cache import ViewCache
from app.core.config import settings
from app.modules.invoices.models import Invoice, InvoiceStatus as ModelInvoiceStatus
from app.modules.invoices.repository import InvoiceRepository, SqlInvoiceRepository
from app.modules.invoices.router import list_invoices
from app.modules.invoices.schemas import (
    FIELD_ERROR_MESSAGES, InvoiceStatus, State, validate_invoice_form
)


INVOICES_PATH = "/dashboard/invoices"
TODAY = date(2026, 10, 19)


class InMemoryInvoiceRepository(InvoiceRepository):
    """Repositorio de prueba que guarda las facturas en un diccionario"""

    def __init__(self):
        self.rows: Dict[str, Invoice] = {}
        self._next = 0

    def seed(self, invoice_id: str, customer_id: str, amount: int, status: str, issued_on: date) -> Invoice:
        invoice = Invoice(id=invoice_id, customer_id=customer_id, amount=amount, status=status, date=issued_on)
        self.rows[invoice_id] = invoice
        return invoice

    async def create(self, customer_id, amount, status, issued_on):
        self._next += 1
        invoice_id = f"inv-{self._next}"
        self.seed(invoice_id, customer_id, amount, status, issued_on)
        return invoice_id

    async def update(self, invoice_id, customer_id, amount, status):
        invoice = self.rows.get(invoice_id)
        if invoice is None:
            return 0
        invoice.customer_id = customer_id
        invoice.amount = amount
        invoice.status = status
        return 1

    async def delete(self, invoice_id):
        return 1 if self.rows.pop(invoice_id, None) is not None else 0

    async def get(self, invoice_id) -> Optional[Invoice]:
        return self.rows.get(invoice_id)

    async def list(self, limit=20, offset=0) -> List[Invoice]:
        ordered = sorted(self.rows.values(), key=lambda i: (-i.date.toordinal(), i.id))
        return ordered[offset:offset + limit]


class FailingInvoiceRepository(InMemoryInvoiceRepository):
    """Simula una base de datos inalcanzable en las escrituras"""

    async def create(self, *args, **kwargs):
        raise ConnectionError("database unreachable")

    async def update(self, *args, **kwargs):
        raise ConnectionError("database unreachable")

    async def delete(self, *args, **kwargs):
        raise ConnectionError("database unreachable")


# ===== FIXTURES =====

@pytest.fixture
def valid_form():
    return {"customerId": "c1", "amount": "50", "status": "pending"}


@pytest.fixture
def repository():
    return InMemoryInvoiceRepository()


@pytest.fixture
def failing_repository():
    return FailingInvoiceRepository()


@pytest.fixture
def cache():
    return ViewCache()


@pytest.fixture
def actions(repository, cache):
    return InvoiceActions(repository, cache, clock=lambda: TODAY, invoices_path=INVOICES_PATH)


@pytest.fixture
def failing_actions(failing_repository, cache):
    return InvoiceActions(failing_repository, cache, clock=lambda: TODAY, invoices_path=INVOICES_PATH)


@pytest_asyncio.fixture
async def db_session():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


# ===== TESTS DE VALIDACIÓN =====

class TestInvoiceFormValidation:

    def test_valid_form(self, valid_form):
        validation = validate_invoice_form(valid_form)

        assert validation.success is True
        assert validation.errors is None
        assert validation.data.customer_id == "c1"
        assert validation.data.amount == Decimal("50")
        assert validation.data.status == InvoiceStatus.PENDING

    def test_extra_fields_are_ignored(self, valid_form):
        validation = validate_invoice_form({**valid_form, "id": "x", "date": "2020-01-01"})
        assert validation.success is True

    @pytest.mark.parametrize("amount", ["0", "-5", "-0.01", "", "abc", "NaN", None])
    def test_amount_must_be_greater_than_zero(self, valid_form, amount):
        validation = validate_invoice_form({**valid_form, "amount": amount})

        assert validation.success is False
        assert validation.errors.amount == ["Please enter a value greater than $0."]
        assert validation.errors.customerId is None
        assert validation.errors.status is None

    @pytest.mark.parametrize("status", ["draft", "PAID", "", None])
    def test_status_must_be_pending_or_paid(self, valid_form, status):
        validation = validate_invoice_form({**valid_form, "status": status})

        assert validation.success is False
        assert validation.errors.status == ["Please select the status of the invoice."]

    @pytest.mark.parametrize("customer_id", ["", None])
    def test_customer_is_required(self, valid_form, customer_id):
        validation = validate_invoice_form({**valid_form, "customerId": customer_id})

        assert validation.success is False
        assert validation.errors.customerId == ["Please select a customer."]

    def test_empty_form_reports_every_field(self):
        validation = validate_invoice_form({})

        errors = validation.errors.model_dump(exclude_none=True)
        assert errors == {field: [message] for field, message in FIELD_ERROR_MESSAGES.items()}


class TestMinorUnits:

    @pytest.mark.parametrize("amount, expected", [
        ("50", 5000),
        ("10", 1000),
        ("19.99", 1999),
        ("10.1", 1010),
        ("0.005", 1),
    ])
    def test_to_minor_units(self, amount, expected):
        assert to_minor_units(Decimal(amount)) == expected

    def test_custom_factor(self):
        assert to_minor_units(Decimal("2.5"), minor_units=1000) == 2500

    def test_utc_today_is_a_date(self):
        assert isinstance(utc_today(), date)


# ===== TESTS DE ACCIONES =====

class TestCreateInvoice:

    @pytest.mark.asyncio
    async def test_create_stores_cents_and_redirects(self, actions, repository, cache, valid_form):
        result = await actions.create_invoice(State(), valid_form)

        assert result == Redirected(INVOICES_PATH)
        assert len(repository.rows) == 1
        invoice = next(iter(repository.rows.values()))
        assert invoice.customer_id == "c1"
        assert invoice.amount == 5000
        assert invoice.status == "pending"
        assert invoice.date == TODAY
        assert cache.revalidations[INVOICES_PATH] == 1

    @pytest.mark.asyncio
    async def test_previous_state_is_ignored(self, actions, valid_form):
        result = await actions.create_invoice(State(message="previous"), valid_form)
        assert isinstance(result, Redirected)

    @pytest.mark.asyncio
    async def test_invalid_amount_writes_nothing(self, actions, repository, cache, valid_form):
        result = await actions.create_invoice(State(), {**valid_form, "amount": "0"})

        assert isinstance(result, State)
        assert result.message == CREATE_VALIDATION_MESSAGE
        assert result.errors.amount == ["Please enter a value greater than $0."]
        assert repository.rows == {}
        assert cache.revalidations[INVOICES_PATH] == 0

    @pytest.mark.asyncio
    async def test_invalid_status_writes_nothing(self, actions, repository, valid_form):
        result = await actions.create_invoice(State(), {**valid_form, "status": "overdue"})

        assert result.errors.status == ["Please select the status of the invoice."]
        assert repository.rows == {}

    @pytest.mark.asyncio
    async def test_database_error_is_reported(self, failing_actions, cache, valid_form):
        result = await failing_actions.create_invoice(State(), valid_form)

        assert result == State(message=CREATE_DATABASE_ERROR)
        assert result.errors is None
        assert cache.revalidations[INVOICES_PATH] == 0


class TestUpdateInvoice:

    @pytest.mark.asyncio
    async def test_update_changes_editable_fields_only(self, actions, repository, cache):
        repository.seed("inv-1", "c1", 5000, "pending", date(2024, 1, 15))

        result = await actions.update_invoice(
            "inv-1", State(), {"customerId": "c2", "amount": "10", "status": "paid"}
        )

        assert result == Redirected(INVOICES_PATH)
        invoice = repository.rows["inv-1"]
        assert invoice.customer_id == "c2"
        assert invoice.amount == 1000
        assert invoice.status == "paid"
        assert invoice.date == date(2024, 1, 15)
        assert cache.revalidations[INVOICES_PATH] == 1

    @pytest.mark.asyncio
    async def test_invalid_update_leaves_row(self, actions, repository):
        repository.seed("inv-1", "c1", 5000, "pending", TODAY)

        result = await actions.update_invoice("inv-1", State(), {"customerId": "c2", "amount": "-1", "status": "paid"})

        assert result.message == UPDATE_VALIDATION_MESSAGE
        assert result.errors.amount is not None
        assert repository.rows["inv-1"].amount == 5000
        assert repository.rows["inv-1"].customer_id == "c1"

    @pytest.mark.asyncio
    async def test_database_error_is_reported(self, failing_actions, failing_repository, cache, valid_form):
        failing_repository.seed("inv-1", "c1", 5000, "pending", TODAY)

        result = await failing_actions.update_invoice("inv-1", State(), valid_form)

        assert result == State(message=UPDATE_DATABASE_ERROR)
        assert cache.revalidations[INVOICES_PATH] == 0


    @pytest.mark.asyncio
    async def test_update_of_missing_invoice_still_redirects(self, actions, repository, cache, valid_form):
        result = await actions.update_invoice("missing", State(), valid_form)

        assert result == Redirected(INVOICES_PATH)
        assert repository.rows == {}
        assert cache.revalidations[INVOICES_PATH] == 1


class TestDeleteInvoice:

    @pytest.mark.asyncio
    async def test_delete_removes_row_without_redirect(self, actions, repository, cache):
        repository.seed("inv-1", "c1", 5000, "pending", TODAY)

        result = await actions.delete_invoice("inv-1")

        assert result.ok is True
        assert result.message == DELETED_MESSAGE
        assert "inv-1" not in repository.rows
        assert cache.revalidations[INVOICES_PATH] == 1

    @pytest.mark.asyncio
    async def test_database_error_keeps_row(self, failing_actions, failing_repository, cache):
        failing_repository.seed("inv-1", "c1", 5000, "pending", TODAY)

        result = await failing_actions.delete_invoice("inv-1")

        assert result == State(message=DELETE_DATABASE_ERROR)
        assert "inv-1" in failing_repository.rows
        assert cache.revalidations[INVOICES_PATH] == 0


    @pytest.mark.asyncio
    async def test_delete_of_missing_invoice_reports_deleted(self, actions, cache):
        result = await actions.delete_invoice("missing")

        assert result.ok is True
        assert result.message == DELETED_MESSAGE
        assert cache.revalidations[INVOICES_PATH] == 1

    @pytest.mark.asyncio
    async def test_failed_delete_is_not_ok(self, failing_actions):
        result = await failing_actions.delete_invoice("inv-1")
        assert result.ok is False


# ===== TESTS DEL CACHÉ =====

class TestViewCache:

    def test_revalidate_drops_path_and_query_variants(self, cache):
        cache.set(INVOICES_PATH, "a")
        cache.set(f"{INVOICES_PATH}?limit=20&offset=0", "b")
        cache.set("/dashboard/customers", "c")

        cache.revalidate_path(INVOICES_PATH)

        assert cache.get(INVOICES_PATH) is None
        assert cache.get(f"{INVOICES_PATH}?limit=20&offset=0") is None
        assert cache.get("/dashboard/customers") == "c"
        assert cache.revalidations[INVOICES_PATH] == 1


# ===== TESTS DEL REPOSITORIO SQL =====

class TestSqlInvoiceRepository:

    @pytest.mark.asyncio
    async def test_create_and_get(self, db_session):
        repo = SqlInvoiceRepository(db_session)

        invoice_id = await repo.create("c1", 5000, "pending", TODAY)
        invoice = await repo.get(invoice_id)

        assert len(invoice_id) == 36
        assert invoice.customer_id == "c1"
        assert invoice.amount == 5000
        assert invoice.status == "pending"
        assert invoice.date == TODAY

    @pytest.mark.asyncio
    async def test_update_keeps_date(self, db_session):
        repo = SqlInvoiceRepository(db_session)
        invoice_id = await repo.create("c1", 5000, "pending", date(2024, 1, 15))

        updated = await repo.update(invoice_id, customer_id="c2", amount=1000, status="paid")
        db_session.expire_all()
        invoice = await repo.get(invoice_id)

        assert updated == 1
        assert (invoice.customer_id, invoice.amount, invoice.status) == ("c2", 1000, "paid")
        assert invoice.date == date(2024, 1, 15)

    @pytest.mark.asyncio
    async def test_delete(self, db_session):
        repo = SqlInvoiceRepository(db_session)
        invoice_id = await repo.create("c1", 5000, "pending", TODAY)

        assert await repo.delete(invoice_id) == 1
        assert await repo.get(invoice_id) is None
        assert await repo.delete(invoice_id) == 0

    @pytest.mark.asyncio
    async def test_check_constraint_rejects_non_positive_amount(self, db_session):
        repo = SqlInvoiceRepository(db_session)

        with pytest.raises(IntegrityError):
            await repo.create("c1", 0, "pending", TODAY)

        assert await repo.list() == []

    @pytest.mark.asyncio
    async def test_list_newest_first(self, db_session):
        repo = SqlInvoiceRepository(db_session)
        await repo.create("c1", 100, "paid", date(2024, 1, 1))
        await repo.create("c2", 200, "pending", date(2025, 6, 1))

        invoices = await repo.list()

        assert [i.customer_id for i in invoices] == ["c2", "c1"]
        assert len(await repo.list(limit=1, offset=1)) == 1

    @pytest.mark.asyncio
    async def test_actions_against_sql(self, db_session, cache):
        actions = InvoiceActions(SqlInvoiceRepository(db_session), cache, clock=lambda: TODAY, invoices_path=INVOICES_PATH)

        result = await actions.create_invoice(State(), {"customerId": "c1", "amount": "50", "status": "pending"})
        invoices = await SqlInvoiceRepository(db_session).list()

        assert result == Redirected(INVOICES_PATH)
        assert len(invoices) == 1
        assert invoices[0].amount == 5000


# ===== TESTS DE ENDPOINTS =====

class TestInvoiceEndpoints:

    @pytest.fixture
    def client(self, repository, cache):
        app.dependency_overrides[get_invoice_repository] = lambda: repository
        app.dependency_overrides[get_view_cache] = lambda: cache
        app.dependency_overrides[get_clock] = lambda: (lambda: TODAY)
        yield TestClient(app)
        app.dependency_overrides.clear()

    @pytest.fixture
    def failing_client(self, failing_repository, cache):
        app.dependency_overrides[get_invoice_repository] = lambda: failing_repository
        app.dependency_overrides[get_view_cache] = lambda: cache
        app.dependency_overrides[get_clock] = lambda: (lambda: TODAY)
        yield TestClient(app)
        app.dependency_overrides.clear()

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    def test_create_redirects_to_listing(self, client, repository, cache, valid_form):
        response = client.post(f"{INVOICES_PATH}/create", data=valid_form, follow_redirects=False)

        assert response.status_code == 303
        assert response.headers["location"] == INVOICES_PATH
        invoice = next(iter(repository.rows.values()))
        assert invoice.amount == 5000
        assert invoice.date == TODAY
        assert cache.revalidations[INVOICES_PATH] == 1

    def test_create_validation_errors(self, client, repository):
        response = client.post(
            f"{INVOICES_PATH}/create",
            data={"customerId": "c1", "amount": "0", "status": "pending"},
            follow_redirects=False
        )

        assert response.status_code == 422
        assert response.json() == {
            "errors": {"amount": ["Please enter a value greater than $0."]},
            "message": CREATE_VALIDATION_MESSAGE
        }
        assert repository.rows == {}

    def test_create_database_error(self, failing_client, valid_form):
        response = failing_client.post(f"{INVOICES_PATH}/create", data=valid_form, follow_redirects=False)

        assert response.status_code == 500
        assert response.json() == {"message": CREATE_DATABASE_ERROR}

    def test_edit_redirects_to_listing(self, client, repository):
        repository.seed("inv-1", "c1", 5000, "pending", TODAY)

        response = client.post(
            f"{INVOICES_PATH}/inv-1/edit",
            data={"customerId": "c2", "amount": "10", "status": "paid"},
            follow_redirects=False
        )

        assert response.status_code == 303
        assert repository.rows["inv-1"].amount == 1000

    def test_delete_returns_message(self, client, repository):
        repository.seed("inv-1", "c1", 5000, "pending", TODAY)

        response = client.post(f"{INVOICES_PATH}/inv-1/delete", follow_redirects=False)

        assert response.status_code == 200
        assert response.json() == {"message": DELETED_MESSAGE}
        assert repository.rows == {}

    def test_delete_database_error(self, failing_client, failing_repository):
        failing_repository.seed("inv-1", "c1", 5000, "pending", TODAY)

        response = failing_client.post(f"{INVOICES_PATH}/inv-1/delete", follow_redirects=False)

        assert response.status_code == 500
        assert response.json() == {"message": DELETE_DATABASE_ERROR}
        assert "inv-1" in failing_repository.rows

    def test_get_invoice(self, client, repository):
        repository.seed("inv-1", "c1", 5000, "paid", TODAY)

        response = client.get(f"{INVOICES_PATH}/inv-1")

        assert response.status_code == 200
        assert response.json() == {
            "id": "inv-1", "customer_id": "c1", "amount": 5000, "status": "paid", "date": TODAY.isoformat()
        }
        assert client.get(f"{INVOICES_PATH}/missing").status_code == 404

    def test_listing_is_cached_until_an_action_revalidates(self, client, repository, valid_form):
        repository.seed("inv-a", "c1", 100, "paid", date(2024, 1, 1))
        first = client.get(INVOICES_PATH).json()

        # Written behind the cache's back: not visible yet
        repository.seed("inv-b", "c2", 200, "pending", date(2024, 2, 1))
        assert client.get(INVOICES_PATH).json() == first

        client.post(f"{INVOICES_PATH}/create", data=valid_form, follow_redirects=False)
        invoices = client.get(INVOICES_PATH).json()["invoices"]

        assert len(first["invoices"]) == 1
        assert len(invoices) == 3

    def test_listing_cache_stays_bounded(self, client, cache):
        for offset in range(200):
            assert client.get(INVOICES_PATH, params={"offset": offset}).status_code == 200

        assert len(cache) <= settings.VIEW_CACHE_MAX_ENTRIES


# ===== TESTS DEL CACHÉ DEL LISTADO =====

class SlowListInvoiceRepository(InMemoryInvoiceRepository):
    """Retiene el listado, ya leídas las filas, hasta que se libera"""

    def __init__(self):
        super().__init__()
        self.rows_read = asyncio.Event()
        self.release = asyncio.Event()

    async def list(self, limit=20, offset=0):
        rows = await super().list(limit=limit, offset=offset)
        self.rows_read.set()
        await self.release.wait()
        return rows


class TestListingCache:

    def test_set_skips_view_from_older_generation(self, cache):
        key = f"{INVOICES_PATH}?limit=20&offset=0"
        generation = cache.generation(INVOICES_PATH)

        cache.revalidate_path(INVOICES_PATH)

        assert cache.set(key, "old", generation=generation) is False
        assert cache.get(key) is None
        assert cache.set(key, "new", generation=cache.generation(INVOICES_PATH)) is True
        assert cache.get(key) == "new"

    def test_least_recently_used_view_is_evicted(self):
        cache = ViewCache(max_entries=3)
        for name in ("a", "b", "c"):
            cache.set(f"/{name}", name)

        cache.get("/a")
        cache.set("/d", "d")

        assert len(cache) == 3
        assert cache.get("/b") is None
        assert cache.get("/a") == "a"
        assert cache.get("/d") == "d"

    @pytest.mark.asyncio
    async def test_listing_read_before_create_is_not_cached(self, cache, valid_form):
        repository = SlowListInvoiceRepository()
        actions = InvoiceActions(repository, cache, clock=lambda: TODAY, invoices_path=INVOICES_PATH)

        listing = asyncio.create_task(list_invoices(repository=repository, cache=cache, limit=20, offset=0))
        await repository.rows_read.wait()
        await actions.create_invoice(State(), valid_form)
        repository.release.set()
        stale = await listing

        fresh = await list_invoices(repository=repository, cache=cache, limit=20, offset=0)

        assert stale.invoices == []
        assert len(fresh.invoices) == 1
        assert len(repository.rows) == 1


class TestInvoiceModel:

    def test_status_enum_is_shared_with_schemas(self):
        assert InvoiceStatus is ModelInvoiceStatus
        assert InvoiceStatus("paid") == "paid"

    def test_issue_date_has_no_implicit_default(self):
        # The issue date always comes from the action's UTC clock
        assert Invoice.__table__.c.date.default is None
