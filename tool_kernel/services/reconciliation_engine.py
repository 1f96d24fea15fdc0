"""
ReconciliationEngine -- retroactive cost redistribution when a tool retires.

Responsibility:
    When a tool reaches a terminal state (BROKEN, WORN, LOST) its true
    per-unit cost becomes known: initial_cost / accumulated_life.  The
    engine recomputes what each usage should have cost, compares it with
    the provisional charge recorded on the usage row, and applies the
    difference to each work order.

Architecture position:
    Kernel > Services.  Called by ToolRegistry.set_state (terminal targets),
    CostEstimator.register_tool_usage (terminal final state) and directly
    by ToolLifecycleService.finalize_tool_life.

Algorithm:
    1. Lock the tool row; load its usage records.
    2. Verify sum(quantity_produced) == accumulated_life.
    3. accumulated_life == 0: retire, no adjustments.
    4. For each record: real_cost = quantity * initial_cost / accumulated_life,
       adjustment = real_cost - provisional_cost.  Apply a paired increment
       when |adjustment| > tolerance, in work order id order.
    5. state = final_state, retired_at = now, mounted_on cleared.

Invariants enforced:
    - Conservation: after reconciliation the tool's cost charged across all
      work orders equals initial_cost, within tolerance per record.
    - Idempotent retirement: a terminal tool is rejected before any
      adjustment is computed, so adjustments are applied at most once.
    - All-or-nothing: the engine only flushes; the caller's transaction
      commits or rolls back the whole reconciliation.

Failure modes:
    - InvalidStateError: final_state is not terminal.
    - ToolNotFoundError: no such tool.
    - ToolRetiredError: tool already terminal.
    - LedgerIntegrityError: usage sum does not match accumulated life.
    - WorkOrderNotFoundError: a usage row references a missing work order.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy.orm import Session

from tool_kernel.db.types import DEFAULT_ADJUSTMENT_TOLERANCE, ZERO, round_money
from tool_kernel.domain.clock import Clock, SystemClock
from tool_kernel.domain.costing import UsageLine, plan_reconciliation
from tool_kernel.domain.dtos import ReconciliationReport, ToolInstanceInfo
from tool_kernel.domain.tool_state import (
    TERMINAL_STATES,
    ToolState,
    parse_state,
    validate_transition,
)
from tool_kernel.exceptions import (
    InvalidStateError,
    LedgerIntegrityError,
    ToolNotFoundError,
)
from tool_kernel.logging_config import get_logger
from tool_kernel.models.tool_instance import ToolInstance
from tool_kernel.selectors.tool_selector import ToolSelector
from tool_kernel.services.base import BaseService
from tool_kernel.services.cost_accumulator import WorkOrderCostAccumulator
from tool_kernel.services.usage_ledger import UsageLedger

logger = get_logger("services.reconciliation")


class ReconciliationEngine(BaseService[ToolInstance]):
    """
    Finalizes a tool's life and corrects every work order it charged.

    Non-goals:
        Does NOT commit; does NOT reactivate retired tools.
    """

    def __init__(
        self,
        session: Session,
        ledger: UsageLedger,
        accumulator: WorkOrderCostAccumulator,
        clock: Clock | None = None,
        tolerance: Decimal = DEFAULT_ADJUSTMENT_TOLERANCE,
    ):
        super().__init__(session)
        self._ledger = ledger
        self._accumulator = accumulator
        self._clock = clock or SystemClock()
        self._tolerance = tolerance
        self._tools = ToolSelector(session)

    def finalize_tool_life(
        self,
        tool_id: UUID | str,
        final_state: ToolState | str,
    ) -> ReconciliationReport:
        """Lock the tool and reconcile it into ``final_state``."""
        target = parse_state(final_state)
        if target not in TERMINAL_STATES:
            raise InvalidStateError(
                target.value,
                "costs are only reconciled when a tool is retired "
                f"({sorted(s.value for s in TERMINAL_STATES)})",
            )

        tool = self._tools.get(tool_id, for_update=True)
        if tool is None:
            raise ToolNotFoundError(str(tool_id))
        return self.finalize_locked(tool, target)

    def finalize_locked(self, tool: ToolInstance, final_state: ToolState) -> ReconciliationReport:
        """Reconcile a tool the caller has already locked in this transaction."""
        target = validate_transition(tool.id, tool.state, final_state, "finalize")

        records = self._ledger.list_usage(tool.id)
        accumulated_life = round_money(Decimal(str(tool.accumulated_life)))
        ledger_total = round_money(
            sum((Decimal(str(r.quantity_produced)) for r in records), ZERO)
        )
        if ledger_total != accumulated_life:
            logger.error(
                "ledger_integrity_violation",
                extra={
                    "tool_id": str(tool.id),
                    "accumulated_life": accumulated_life,
                    "ledger_total": ledger_total,
                },
            )
            raise LedgerIntegrityError(
                str(tool.id), str(accumulated_life), str(ledger_total)
            )

        initial_cost = Decimal(str(tool.initial_cost))
        plan = plan_reconciliation(
            initial_cost,
            accumulated_life,
            (
                UsageLine(
                    record_id=r.id,
                    work_order_id=r.work_order_id,
                    quantity=Decimal(str(r.quantity_produced)),
                    provisional_cost=Decimal(str(r.provisional_cost)),
                )
                for r in records
            ),
            tolerance=self._tolerance,
        )

        for line in plan.applied_in_lock_order():
            self._accumulator.increment(
                line.work_order_id,
                line.adjustment,
                reason="tool_life_reconciliation",
            )
            logger.info(
                "reconciliation_adjustment_applied",
                extra={
                    "tool_id": str(tool.id),
                    "work_order_id": str(line.work_order_id),
                    "usage_record_id": str(line.record_id),
                    "real_cost": line.real_cost,
                    "original_estimate": line.original_estimate,
                    "adjustment": line.adjustment,
                },
            )

        tool.state = target.value
        tool.retired_at = self._clock.now()
        tool.mounted_on = None
        self.session.flush()

        if accumulated_life <= 0:
            logger.info(
                "tool_retired_unused",
                extra={"tool_id": str(tool.id), "final_state": target.value},
            )
        else:
            logger.info(
                "tool_life_reconciled",
                extra={
                    "tool_id": str(tool.id),
                    "final_state": target.value,
                    "accumulated_life": accumulated_life,
                    "real_unit_cost": plan.real_unit_cost,
                    "usage_count": len(plan.lines),
                    "applied_count": len(plan.applied_lines),
                    "skipped_count": plan.skipped_count,
                    "applied_total": plan.applied_total,
                },
            )

        return ReconciliationReport(
            tool=ToolInstanceInfo.from_model(tool),
            final_state=target,
            accumulated_life=accumulated_life,
            real_unit_cost=plan.real_unit_cost,
            lines=plan.lines,
            applied_total=plan.applied_total,
            skipped_count=plan.skipped_count,
        )
