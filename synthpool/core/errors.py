"""Exception types for the pricing and accounting engine.

Every error is raised synchronously to the caller and never retried
internally. Composite operations re-raise the first leg's error unchanged
after rolling back (see ``ExchangeContext.atomic``).
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine rejections."""


class EmptyPoolError(EngineError):
    """Raised when a computation would divide by an empty reserve."""


class ArithmeticFault(EngineError, ArithmeticError):
    """Base class for fixed-point arithmetic failures."""


class UnderflowError(ArithmeticFault):
    """Raised when an unsigned subtraction would go negative."""


class DivideByZeroError(ArithmeticFault, ZeroDivisionError):
    """Raised on a fixed-point division by zero."""


class InsufficientOutputError(EngineError):
    """Raised when a computed amount is below the caller's slippage bound."""


class InsufficientLiquidityError(EngineError):
    """Raised when an operation would drain (or under-seed) a reserve."""


class InsufficientUnitsError(EngineError):
    """Raised when a burn exceeds the units held or outstanding."""


class PoolFrozenError(EngineError):
    """Raised when a state-changing operation targets a frozen pool."""

    def __init__(self, pool_id: str) -> None:
        self.pool_id = pool_id
        super().__init__(f"pool {pool_id} is frozen")


class UnknownPoolError(EngineError, KeyError):
    """Raised when no pool is registered for a token."""


class UnknownSynthError(EngineError, KeyError):
    """Raised when no synthetic is registered for a token."""


class NotCuratedError(EngineError):
    """Raised when an operation requires a curated pool."""


class InvariantError(EngineError):
    """Raised when a post-state violates one or more invariants."""

    def __init__(self, violations: list[str]) -> None:
        self.violations = violations
        super().__init__(f"invariant violations: {', '.join(violations)}")
