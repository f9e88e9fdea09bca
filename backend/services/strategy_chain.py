"""
Ordered strategy runner used by the URL extractor and the import fallback tiers.

Each strategy is a named callable returning a value or None. The chain tries
them in order, stops at the first non-None value and records the names it
attempted.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Strategy(Generic[T]):
    name: str
    run: Callable[[], Optional[T]]


@dataclass
class ChainOutcome(Generic[T]):
    value: Optional[T] = None
    strategy: Optional[str] = None
    attempts: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.value is not None


def run_chain(strategies: Iterable[Strategy[T]], label: str = "") -> ChainOutcome[T]:
    outcome: ChainOutcome[T] = ChainOutcome()
    for strategy in strategies:
        outcome.attempts.append(strategy.name)
        value = strategy.run()
        if value is not None:
            outcome.value = value
            outcome.strategy = strategy.name
            logger.debug("%s resolved by %s", label or "chain", strategy.name)
            return outcome
    logger.debug("%s exhausted after %s", label or "chain", outcome.attempts)
    return outcome
