"""
Saga execution with automatic rollback.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog
from kungfu import Result, Ok, Error

from storefront.saga._types import (
    CompensatorWithValue,
    SagaError,
    SagaExpr,
    SagaResult,
    SagaStep,
    Then,
)

log = structlog.get_logger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# Recorded Compensators
# ═══════════════════════════════════════════════════════════════════════════════

type RecordedCompensator = tuple[str, Any, CompensatorWithValue[Any]]


@dataclass(slots=True)
class _Ledger:
    compensators: list[RecordedCompensator] = field(default_factory=list[RecordedCompensator])
    steps: int = 0


# ═══════════════════════════════════════════════════════════════════════════════
# _execute(): Walk the saga expression
# ═══════════════════════════════════════════════════════════════════════════════

async def _execute(expr: SagaExpr[Any, Any], ledger: _Ledger) -> Result[Any, Any]:
    match expr:
        case SagaStep():
            ledger.steps += 1
            result = await expr.action
            match result:
                case Ok(value):
                    if expr.compensate is not None:
                        ledger.compensators.append((expr.name, value, expr.compensate))
                    return Ok(value)
                case Error(e):
                    log.info("saga_step_failed", step=expr.name, index=ledger.steps)
                    return Error(e)

        case Then(inner=inner, f=f):
            match await _execute(inner, ledger):
                case Ok(value):
                    return await _execute(f(value), ledger)
                case Error(e):
                    return Error(e)


# ═══════════════════════════════════════════════════════════════════════════════
# run_compensators(): Rollback
# ═══════════════════════════════════════════════════════════════════════════════

async def run_compensators(compensators: list[RecordedCompensator]) -> tuple[int, int]:
    """Run compensators in reverse. Returns (run, failed)."""
    comp_run = 0
    comp_failed = 0

    for name, value, comp in reversed(compensators):
        try:
            await comp(value)
            comp_run += 1
            log.info("saga_compensated", step=name)
        except Exception:
            comp_failed += 1
            log.exception("saga_compensation_failed", step=name)

    return comp_run, comp_failed


# ═══════════════════════════════════════════════════════════════════════════════
# run(): Execute a saga expression
# ═══════════════════════════════════════════════════════════════════════════════

async def run[T, E](saga: SagaExpr[T, E]) -> Result[SagaResult[T], SagaError[E]]:
    """
    Execute a step or a ``.then`` chain with automatic rollback.

    On failure the compensators of every completed step run in reverse.
    An exception escaping an action also triggers rollback and is re-raised.

    Example:
        result = await S.run(
            S.step(persist, void).then(lambda order: S.step(create_provider_order(order)))
        )

        match result:
            case Ok(r):
                ...
            case Error(e):
                log.warning("rolled back", step=e.step_failed, complete=e.rollback_complete)
    """
    ledger = _Ledger()

    try:
        result = await _execute(saga, ledger)
    except Exception:
        await run_compensators(ledger.compensators)
        raise

    match result:
        case Ok(value):
            return Ok(SagaResult(
                value=value,
                steps_executed=ledger.steps,
                compensators_recorded=len(ledger.compensators),
            ))

        case Error(error):
            comp_run, comp_failed = await run_compensators(ledger.compensators)

            return Error(SagaError(
                error=error,
                step_failed=ledger.steps,
                compensators_run=comp_run,
                compensators_failed=comp_failed,
                rollback_complete=comp_failed == 0,
            ))


# ═══════════════════════════════════════════════════════════════════════════════
# Exports
# ═══════════════════════════════════════════════════════════════════════════════

__all__ = ("run", "run_compensators")
