"""
Saga — multi-step operations with compensation.

    from storefront import saga as S

    saga = S.step(action, compensate).then(lambda v: S.step(action2, compensate2))
    result = await S.run(saga)
"""

from __future__ import annotations

from storefront.saga._types import (
    CompensatorWithValue,
    SagaStep,
    SagaExpr,
    SagaResult,
    SagaError,
    Then,
)
from storefront.saga._step import step, from_async
from storefront.saga._run import run, run_compensators

__all__ = (
    "CompensatorWithValue",
    "SagaStep",
    "SagaExpr",
    "SagaResult",
    "SagaError",
    "Then",
    "step",
    "from_async",
    "run",
    "run_compensators",
)
