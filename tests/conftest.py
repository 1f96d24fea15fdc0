"""
Pytest fixtures for the tool kernel test suite.

Provides:
- An isolated Database per test (schema created, listeners registered)
- Component services bound to one session, and the ToolLifecycleService facade
- Catalog item / work order factories
- Captured structured logs

Environment Variables:
- TOOL_KERNEL_TEST_DATABASE_URL: database for the suite.  Defaults to an
  in-memory SQLite database.  Tests marked ``postgres`` are skipped unless
  this points at PostgreSQL.
"""

import json
import logging
import os
from decimal import Decimal
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from tool_kernel.db.engine import Database
from tool_kernel.domain.clock import DeterministicClock
from tool_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from tool_kernel.models.catalog_item import CatalogItem
from tool_kernel.models.work_order import WorkOrder
from tool_kernel.selectors.reference_selector import CatalogSelector
from tool_kernel.services.cost_accumulator import WorkOrderCostAccumulator
from tool_kernel.services.cost_estimator import CostEstimator
from tool_kernel.services.reconciliation_engine import ReconciliationEngine
from tool_kernel.services.tool_lifecycle_service import ToolLifecycleService
from tool_kernel.services.tool_registry import ToolRegistry
from tool_kernel.services.usage_ledger import UsageLedger

DEFAULT_TEST_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    return os.environ.get("TOOL_KERNEL_TEST_DATABASE_URL", DEFAULT_TEST_DATABASE_URL)


def is_postgres_url(url: str) -> bool:
    return url.startswith("postgresql")


def pytest_collection_modifyitems(config, items):
    if is_postgres_url(get_database_url()):
        return
    skip_pg = pytest.mark.skip(reason="requires TOOL_KERNEL_TEST_DATABASE_URL=postgresql://...")
    for item in items:
        if "postgres" in item.keywords:
            item.add_marker(skip_pg)


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture tool_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, service):
            service.register_machine_production(...)
            logs = captured_logs()
            assert any(r["message"] == "production_registered" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("tool_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def database() -> Generator[Database, None, None]:
    """A fresh schema per test; in-memory SQLite unless configured otherwise."""
    db = Database.from_url(get_database_url(), pool_size=5, max_overflow=5)
    db.drop_tables()
    db.create_tables()
    yield db
    db.drop_tables()
    db.dispose()


@pytest.fixture
def session(database: Database) -> Generator[Session, None, None]:
    """
    A single session for component-level tests.

    Nothing is committed; the transaction is rolled back at teardown.  Do not
    mix with the facade fixtures in one test: on in-memory SQLite every
    session shares one connection.
    """
    sess = database.session()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


# =============================================================================
# Component services (one session)
# =============================================================================


@pytest.fixture
def usage_ledger(session, deterministic_clock) -> UsageLedger:
    return UsageLedger(session, deterministic_clock)


@pytest.fixture
def cost_accumulator(session) -> WorkOrderCostAccumulator:
    return WorkOrderCostAccumulator(session)


@pytest.fixture
def reconciliation_engine(
    session, usage_ledger, cost_accumulator, deterministic_clock
) -> ReconciliationEngine:
    return ReconciliationEngine(
        session, usage_ledger, cost_accumulator, clock=deterministic_clock
    )


@pytest.fixture
def tool_registry(session, reconciliation_engine) -> ToolRegistry:
    return ToolRegistry(session, reconciliation_engine)


@pytest.fixture
def cost_estimator(
    session, usage_ledger, cost_accumulator, tool_registry, reconciliation_engine
) -> CostEstimator:
    return CostEstimator(
        session, usage_ledger, cost_accumulator, tool_registry, reconciliation_engine
    )


@pytest.fixture
def create_catalog_item(session: Session):
    """Factory for catalog items inside the test session."""

    def _create(
        sku: str = "EM-10",
        name: str = "End mill 10mm",
        estimated_life: Decimal | None = Decimal("100"),
        unit_cost_hint: Decimal | None = Decimal("50"),
    ) -> CatalogItem:
        item = CatalogItem(
            sku=sku,
            name=name,
            estimated_life=estimated_life,
            unit_cost_hint=unit_cost_hint,
        )
        session.add(item)
        session.flush()
        return item

    return _create


@pytest.fixture
def create_work_order(session: Session):
    """Factory for work orders inside the test session."""

    def _create(
        code: str | None = None,
        cost_materials: Decimal = Decimal("0"),
        cost_labor: Decimal = Decimal("0"),
    ) -> WorkOrder:
        work_order = WorkOrder(
            code=code or f"WO-{uuid4().hex[:8]}",
            cost_materials=cost_materials,
            cost_labor=cost_labor,
            cost_overheads=Decimal("0"),
            cost_total=cost_materials + cost_labor,
        )
        session.add(work_order)
        session.flush()
        return work_order

    return _create


@pytest.fixture
def mounted_tool(session, tool_registry, create_catalog_item):
    """Factory: a tool created from a catalog item and mounted on a machine."""

    def _create(
        machine_id: str = "CNC-01",
        sku: str = "EM-10",
        initial_cost: str = "50",
        estimated_life: str | None = "100",
        code: str | None = None,
    ):
        if CatalogSelector(session).get_by_sku(sku) is None:
            create_catalog_item(sku=sku)
        tool = tool_registry.create_tool_instance(
            sku,
            code=code,
            initial_cost=initial_cost,
            estimated_life=estimated_life,
        )
        return tool_registry.mount_on_machine(tool.id, machine_id)

    return _create


# =============================================================================
# Facade (committed transactions)
# =============================================================================


@pytest.fixture
def service(database, deterministic_clock) -> ToolLifecycleService:
    return ToolLifecycleService(database, clock=deterministic_clock)


@pytest.fixture
def seed_catalog_item(database: Database):
    """Factory: commit a catalog item for facade tests."""

    def _seed(
        sku: str = "EM-10",
        name: str = "End mill 10mm",
        estimated_life: Decimal | None = Decimal("100"),
        unit_cost_hint: Decimal | None = Decimal("50"),
    ) -> str:
        with database.session_scope() as sess:
            sess.add(
                CatalogItem(
                    sku=sku,
                    name=name,
                    estimated_life=estimated_life,
                    unit_cost_hint=unit_cost_hint,
                )
            )
        return sku

    return _seed


@pytest.fixture
def seed_work_order(database: Database):
    """Factory: commit a work order for facade tests; returns its id."""

    def _seed(
        code: str | None = None,
        cost_materials: Decimal = Decimal("0"),
        cost_labor: Decimal = Decimal("0"),
    ):
        with database.session_scope() as sess:
            work_order = WorkOrder(
                code=code or f"WO-{uuid4().hex[:8]}",
                cost_materials=cost_materials,
                cost_labor=cost_labor,
                cost_overheads=Decimal("0"),
                cost_total=cost_materials + cost_labor,
            )
            sess.add(work_order)
            sess.flush()
            return work_order.id

    return _seed
