"""Auto-tuner - grid search over named retrieval strategies."""

import logging
from typing import Callable, Optional, Sequence

from ..errors import ConfigurationError
from ..models.benchmark import (
    BenchmarkCase,
    TuningOutcome,
    TuningStepResult,
    TuningStrategy,
)
from ..models.config import RetrievalConfig
from .evaluation_service import EvaluationHarness

logger = logging.getLogger(__name__)

StepCallback = Callable[[TuningStepResult], None]

DEFAULT_STRATEGIES: tuple[TuningStrategy, ...] = (
    TuningStrategy("Baseline", min_confidence=0.1, temperature=0.1, vector_weight=0.8),
    TuningStrategy("Precision Mode", min_confidence=0.4, temperature=0.0, vector_weight=0.9),
    TuningStrategy("Keyword Heavy", min_confidence=0.1, temperature=0.0, vector_weight=0.3),
    TuningStrategy("Vector Heavy", min_confidence=0.1, temperature=0.0, vector_weight=0.9),
    TuningStrategy("Balanced", min_confidence=0.2, temperature=0.2, vector_weight=0.6),
    TuningStrategy("Creative", min_confidence=0.05, temperature=0.6, vector_weight=0.7),
)


class AutoTuner:
    """Evaluates strategies in order and stops at the first acceptable one."""

    def __init__(
        self,
        harness: EvaluationHarness,
        acceptance_threshold: float = 0.85,
        strategies: Sequence[TuningStrategy] = DEFAULT_STRATEGIES,
    ):
        """Initialize tuner.

        Args:
            harness: Evaluation harness used to score each strategy.
            acceptance_threshold: Mean score that ends the search.
            strategies: Strategy grid, evaluated in the given order.
        """
        if not strategies:
            raise ConfigurationError("AutoTuner requires at least one strategy")
        self._harness = harness
        self._acceptance = acceptance_threshold
        self._strategies = tuple(strategies)

    @property
    def strategies(self) -> tuple[TuningStrategy, ...]:
        return self._strategies

    async def tune(
        self,
        cases: Sequence[BenchmarkCase],
        base_config: Optional[RetrievalConfig] = None,
        on_step: Optional[StepCallback] = None,
    ) -> TuningOutcome:
        """Search the strategy grid.

        Args:
            cases: Benchmark cases run for every strategy.
            base_config: Config the strategies override. Never mutated.
            on_step: Called with each step result as soon as it is known.

        Returns:
            The accepted strategy, or the best one seen when none reached
            the acceptance threshold.

        Raises:
            ValueError: No cases were given.
        """
        if not cases:
            raise ValueError("Tuning requires at least one benchmark case")

        base_config = base_config or RetrievalConfig()
        steps: list[TuningStepResult] = []
        best: Optional[TuningStepResult] = None

        for strategy in self._strategies:
            config = strategy.apply(base_config)
            logger.info(f"[tune] Testing strategy '{strategy.name}'")

            run = await self._harness.run_benchmark(cases, config)
            step = TuningStepResult(
                strategy_name=strategy.name,
                config=config,
                score=run.avg_score,
                passed=run.avg_score >= self._acceptance,
            )
            steps.append(step)
            if on_step is not None:
                on_step(step)

            logger.info(f"[tune] '{strategy.name}' scored {step.score:.3f}")

            if step.passed:
                logger.info(f"[tune] Accepted '{strategy.name}'")
                return TuningOutcome(best=step, accepted=True, steps=tuple(steps))

            if best is None or step.score > best.score:
                best = step

        logger.warning(
            f"[tune] No strategy reached {self._acceptance:.2f}; "
            f"best was '{best.strategy_name}' at {best.score:.3f}"
        )
        return TuningOutcome(best=best, accepted=False, steps=tuple(steps))
