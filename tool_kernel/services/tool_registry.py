"""
ToolRegistry -- creation and lifecycle state of tool instances.

Responsibility:
    Creates tool instances from catalog items, mounts and unmounts them on
    machines, and moves them through the lifecycle state machine.  Any
    transition into a terminal state is delegated to ReconciliationEngine
    within the same transaction.

Architecture position:
    Kernel > Services.  Called by ToolLifecycleService.

Invariants enforced:
    - Every state change is validated by domain/tool_state.py.
    - mounted_on is set only while IN_USE.
    - Terminal states are absorbing; reactivation is rejected.
    - estimated_life is copied from the catalog at creation when omitted.

Failure modes:
    - InvalidCodeError / InvalidCostError / InvalidQuantityError on input.
    - DuplicateCodeError: code already registered.
    - CatalogItemNotFoundError / ToolNotFoundError.
    - ToolRetiredError / InvalidToolTransitionError / ToolNotMountedError.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from tool_kernel.domain.costing import validate_cost, validate_estimated_life
from tool_kernel.domain.tool_state import (
    TERMINAL_STATES,
    ToolState,
    is_terminal,
    parse_state,
    validate_transition,
)
from tool_kernel.exceptions import (
    CatalogItemNotFoundError,
    DuplicateCodeError,
    InvalidCodeError,
    InvalidCostError,
    InvalidStateError,
    ToolNotFoundError,
    ToolNotMountedError,
    ToolRetiredError,
    ValidationError,
)
from tool_kernel.logging_config import get_logger
from tool_kernel.models.catalog_item import CatalogItem
from tool_kernel.models.tool_instance import ToolInstance
from tool_kernel.selectors.reference_selector import CatalogSelector
from tool_kernel.selectors.tool_selector import ToolSelector
from tool_kernel.services.base import BaseService
from tool_kernel.services.reconciliation_engine import ReconciliationEngine
from tool_kernel.services.sequence_service import SequenceService

logger = get_logger("services.tool_registry")

STORAGE_LOCATION = "Storage"
DEFAULT_CODE_WIDTH = 6


def mounted_location(machine_id: str) -> str:
    return f"Mounted on machine {machine_id}"


class ToolRegistry(BaseService[ToolInstance]):
    """Owns the ToolInstance aggregate outside of usage and reconciliation."""

    def __init__(
        self,
        session: Session,
        reconciliation_engine: ReconciliationEngine,
        default_unmount_state: ToolState = ToolState.SHARPENED,
        code_width: int = DEFAULT_CODE_WIDTH,
    ):
        super().__init__(session)
        self._reconciliation = reconciliation_engine
        self._default_unmount_state = parse_state(default_unmount_state)
        self._code_width = code_width
        self._tools = ToolSelector(session)
        self._catalog = CatalogSelector(session)
        self._sequences = SequenceService(session)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_tool(self, tool_id: UUID | str, for_update: bool = False) -> ToolInstance:
        tool = self._tools.get(tool_id, for_update=for_update)
        if tool is None:
            raise ToolNotFoundError(str(tool_id))
        return tool

    def get_tool_by_code(self, code: str) -> ToolInstance:
        tool = self._tools.get_by_code(code)
        if tool is None:
            raise ToolNotFoundError(code)
        return tool

    def list_mounted_tools(self, machine_id: str) -> list[ToolInstance]:
        return self._tools.mounted_on(machine_id)

    def list_available_tools(self) -> list[ToolInstance]:
        return self._tools.available()

    def _require_catalog_item(self, catalog_item_ref: str) -> CatalogItem:
        item = self._catalog.get_by_sku(catalog_item_ref)
        if item is None:
            raise CatalogItemNotFoundError(catalog_item_ref)
        return item

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def next_tool_code(self, catalog_item_ref: str) -> str:
        """
        Allocate the next free ``<SKU>-NNNNNN`` code for a catalog item.

        Numbers taken by manually coded tools are skipped.
        """
        self._require_catalog_item(catalog_item_ref)
        sequence_name = SequenceService.tool_code_sequence(catalog_item_ref)
        while True:
            value = self._sequences.next_value(sequence_name)
            code = f"{catalog_item_ref}-{value:0{self._code_width}d}"
            if not self._tools.code_exists(code):
                return code
            logger.debug("tool_code_skipped", extra={"tool_code": code})

    def create_tool_instance(
        self,
        catalog_item_ref: str,
        code: str | None = None,
        location: str | None = None,
        initial_cost: Decimal | int | str | None = None,
        estimated_life: Decimal | int | str | None = None,
    ) -> ToolInstance:
        """
        Register a new tool instance in state NEW.

        ``code=None`` allocates the next sequential code for the catalog
        item; an empty code is rejected.  Omitted ``estimated_life`` and
        ``initial_cost`` fall back to the catalog item's defaults.
        """
        if code is not None and (not isinstance(code, str) or not code.strip()):
            raise InvalidCodeError(code)

        life = validate_estimated_life(estimated_life)
        cost = validate_cost(initial_cost) if initial_cost is not None else None

        item = self._require_catalog_item(catalog_item_ref)

        if cost is None:
            if item.unit_cost_hint is None:
                raise InvalidCostError(
                    "initial_cost", None, "required when the catalog item has no unit cost"
                )
            cost = validate_cost(Decimal(str(item.unit_cost_hint)))
        if life is None and item.estimated_life is not None:
            catalog_life = Decimal(str(item.estimated_life))
            life = catalog_life if catalog_life > 0 else None

        if code is None:
            code = self.next_tool_code(catalog_item_ref)
        else:
            code = code.strip()
            if self._tools.code_exists(code):
                raise DuplicateCodeError(code)

        tool = ToolInstance(
            code=code,
            catalog_item_ref=catalog_item_ref,
            location=location or STORAGE_LOCATION,
            initial_cost=cost,
            estimated_life=life,
            accumulated_life=Decimal("0"),
            state=ToolState.NEW.value,
        )
        # A concurrent insert of the same code surfaces at flush.
        savepoint = self.session.begin_nested()
        try:
            self.session.add(tool)
            self.session.flush()
            savepoint.commit()
        except IntegrityError:
            savepoint.rollback()
            raise DuplicateCodeError(code) from None

        logger.info(
            "tool_created",
            extra={
                "tool_id": str(tool.id),
                "tool_code": code,
                "catalog_item_ref": catalog_item_ref,
                "initial_cost": cost,
                "estimated_life": life,
            },
        )
        return tool

    # ------------------------------------------------------------------
    # Mounting
    # ------------------------------------------------------------------

    def mount_on_machine(self, tool_id: UUID | str, machine_id: str) -> ToolInstance:
        """
        Mount a tool on a machine; state becomes IN_USE.

        Mounting a tool that is already mounted elsewhere moves it (last
        mount wins).
        """
        if not machine_id or not str(machine_id).strip():
            raise ValidationError("machine_id must be a non-empty string")
        machine_id = str(machine_id).strip()

        tool = self.get_tool(tool_id, for_update=True)
        validate_transition(tool.id, tool.state, ToolState.IN_USE, "mount")

        previous_machine = tool.mounted_on
        tool.state = ToolState.IN_USE.value
        tool.mounted_on = machine_id
        tool.location = mounted_location(machine_id)
        self.session.flush()

        logger.info(
            "tool_mounted",
            extra={
                "tool_id": str(tool.id),
                "machine_id": machine_id,
                "previous_machine_id": previous_machine,
            },
        )
        return tool

    def unmount_from_machine(
        self,
        tool_id: UUID | str,
        resulting_state: ToolState | str | None = None,
    ) -> ToolInstance:
        """
        Take a tool off its machine and return it to storage.

        The resulting state defaults to SHARPENED and is set from any
        non-terminal state, mounted or not.  Retirement goes through
        set_state / finalize_tool_life, so terminal states are rejected here,
        as is IN_USE for a tool that is no longer on a machine.
        """
        target = (
            parse_state(resulting_state)
            if resulting_state is not None
            else self._default_unmount_state
        )
        if target in TERMINAL_STATES:
            raise InvalidStateError(
                target.value, "retire the tool instead of unmounting it"
            )
        if target == ToolState.IN_USE:
            raise InvalidStateError(
                target.value, "an unmounted tool cannot be in use"
            )

        tool = self.get_tool(tool_id, for_update=True)
        if is_terminal(tool.state):
            raise ToolRetiredError(str(tool.id), tool.state, "unmount")

        machine_id = tool.mounted_on
        tool.state = target.value
        tool.mounted_on = None
        tool.location = STORAGE_LOCATION
        self.session.flush()

        logger.info(
            "tool_unmounted",
            extra={
                "tool_id": str(tool.id),
                "machine_id": machine_id,
                "resulting_state": target.value,
            },
        )
        return tool

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def set_state(self, tool_id: UUID | str, new_state: ToolState | str) -> ToolInstance:
        """
        Move a tool to ``new_state``.

        Terminal targets are reconciled through ReconciliationEngine.
        IN_USE is only accepted for a tool that is mounted; use
        mount_on_machine to put a tool into service.
        """
        target = parse_state(new_state)
        if target in TERMINAL_STATES:
            report = self._reconciliation.finalize_tool_life(tool_id, target)
            return self.get_tool(report.tool.id)

        tool = self.get_tool(tool_id, for_update=True)
        previous = parse_state(tool.state)
        validate_transition(tool.id, previous, target, "change state of")

        if target == ToolState.IN_USE:
            if not tool.is_mounted:
                raise ToolNotMountedError(str(tool.id), previous.value)
        elif tool.is_mounted:
            tool.mounted_on = None
            tool.location = STORAGE_LOCATION

        tool.state = target.value
        tool.retired_at = None
        self.session.flush()

        logger.info(
            "tool_state_changed",
            extra={
                "tool_id": str(tool.id),
                "from_state": previous.value,
                "to_state": target.value,
            },
        )
        return tool

    def update_estimated_life(
        self,
        tool_id: UUID | str,
        estimated_life: Decimal | int | str,
    ) -> ToolInstance:
        """
        Change the expected life of an active tool.

        Future provisional costs use the new rate; existing usage records
        keep the rate and charge they were written with.
        """
        life = validate_estimated_life(estimated_life)
        if life is None:
            raise ValidationError("estimated_life is required")

        tool = self.get_tool(tool_id, for_update=True)
        if tool.is_retired:
            raise ToolRetiredError(str(tool.id), tool.state, "update estimated life of")

        previous = tool.estimated_life
        tool.estimated_life = life
        self.session.flush()

        logger.info(
            "tool_estimated_life_updated",
            extra={
                "tool_id": str(tool.id),
                "previous_estimated_life": previous,
                "estimated_life": life,
            },
        )
        return tool
