"""CLI setup: schema creation and reference data (catalog items, work orders)."""

from decimal import Decimal
from uuid import UUID

from tool_kernel.db.engine import Database
from tool_kernel.models.catalog_item import CatalogItem
from tool_kernel.models.work_order import WorkOrder
from tool_kernel.selectors.base import coerce_uuid
from tool_kernel.selectors.reference_selector import CatalogSelector, WorkOrderSelector


def init_db(database: Database, reset: bool = False) -> list[str]:
    """Create all tables, dropping them first when ``reset`` is set."""
    if reset:
        database.drop_tables()
    database.create_tables()
    from tool_kernel.db.base import Base

    return sorted(Base.metadata.tables)


def add_catalog_item(
    database: Database,
    sku: str,
    name: str,
    estimated_life: Decimal | None = None,
    unit_cost: Decimal | None = None,
) -> CatalogItem:
    """Insert or update a catalog item.  Catalog data is owned outside the kernel."""
    with database.session_scope() as session:
        item = CatalogSelector(session).get_by_sku(sku)
        if item is None:
            item = CatalogItem(sku=sku, name=name)
            session.add(item)
        item.name = name
        item.estimated_life = estimated_life
        item.unit_cost_hint = unit_cost
        session.flush()
        return item


def add_work_order(
    database: Database,
    code: str,
    cost_materials: Decimal = Decimal("0"),
    cost_labor: Decimal = Decimal("0"),
) -> WorkOrder:
    with database.session_scope() as session:
        work_order = WorkOrder(
            code=code,
            cost_materials=cost_materials,
            cost_labor=cost_labor,
            cost_overheads=Decimal("0"),
            cost_total=cost_materials + cost_labor,
        )
        session.add(work_order)
        session.flush()
        return work_order


def resolve_work_order_id(database: Database, ref: str) -> UUID | None:
    """Resolve a work order UUID or code to its id."""
    parsed = coerce_uuid(ref)
    if parsed is not None:
        return parsed
    with database.session_scope() as session:
        work_order = WorkOrderSelector(session).get_by_code(ref)
        return work_order.id if work_order is not None else None
