"""
Tests for AutoTuner
"""

import pytest
from unittest.mock import AsyncMock, Mock

from hybrid_rag.core.errors import ConfigurationError
from hybrid_rag.core.models.benchmark import BenchmarkCase, BenchmarkRun
from hybrid_rag.core.models.config import RetrievalConfig
from hybrid_rag.core.services.tuning_service import DEFAULT_STRATEGIES, AutoTuner

CASES = [BenchmarkCase(id=1, question="q", ground_truth="a")]


def _harness(scores):
    runs = [
        BenchmarkRun(
            timestamp=0.0,
            total_cases=1,
            avg_score=score,
            avg_faithfulness=None,
            avg_relevance=None,
            pass_rate=1.0 if score >= 0.6 else 0.0,
            avg_time_ms=1.0,
        )
        for score in scores
    ]
    harness = Mock()
    harness.run_benchmark = AsyncMock(side_effect=runs)
    return harness


class TestTune:

    @pytest.mark.asyncio
    async def test_stops_at_first_accepted_strategy(self):
        harness = _harness([0.5, 0.9, 0.95])
        tuner = AutoTuner(harness)
        base = RetrievalConfig(top_k=7)

        outcome = await tuner.tune(CASES, base)

        assert harness.run_benchmark.await_count == 2
        assert outcome.accepted
        assert outcome.best.strategy_name == DEFAULT_STRATEGIES[1].name
        assert outcome.config == DEFAULT_STRATEGIES[1].apply(base)
        assert outcome.config.top_k == 7
        assert [s.passed for s in outcome.steps] == [False, True]

    @pytest.mark.asyncio
    async def test_best_local_optimum_when_nothing_accepted(self):
        strategies = DEFAULT_STRATEGIES[:3]
        tuner = AutoTuner(_harness([0.5, 0.7, 0.6]), strategies=strategies)

        outcome = await tuner.tune(CASES)

        assert not outcome.accepted
        assert outcome.best.strategy_name == strategies[1].name
        assert outcome.best.score == 0.7
        assert len(outcome.steps) == 3

    @pytest.mark.asyncio
    async def test_ties_keep_earlier_strategy(self):
        strategies = DEFAULT_STRATEGIES[:2]
        tuner = AutoTuner(_harness([0.5, 0.5]), strategies=strategies)

        outcome = await tuner.tune(CASES)

        assert outcome.best.strategy_name == strategies[0].name

    @pytest.mark.asyncio
    async def test_each_strategy_is_benchmarked_with_its_config(self):
        harness = _harness([0.1, 0.1])
        tuner = AutoTuner(harness, strategies=DEFAULT_STRATEGIES[:2])

        await tuner.tune(CASES)

        configs = [call.args[1] for call in harness.run_benchmark.await_args_list]
        assert configs[0].min_confidence == DEFAULT_STRATEGIES[0].min_confidence
        assert configs[1].vector_weight == DEFAULT_STRATEGIES[1].vector_weight

    @pytest.mark.asyncio
    async def test_step_callback_and_base_untouched(self):
        base = RetrievalConfig()
        seen = []
        tuner = AutoTuner(_harness([0.2, 0.3]), strategies=DEFAULT_STRATEGIES[:2])

        await tuner.tune(CASES, base, on_step=seen.append)

        assert [s.strategy_name for s in seen] == ["Baseline", "Precision Mode"]
        assert base == RetrievalConfig()

    @pytest.mark.asyncio
    async def test_empty_cases_rejected(self):
        tuner = AutoTuner(_harness([]))

        with pytest.raises(ValueError):
            await tuner.tune([])


class TestStrategies:

    def test_default_grid_order(self):
        assert [s.name for s in DEFAULT_STRATEGIES] == [
            "Baseline",
            "Precision Mode",
            "Keyword Heavy",
            "Vector Heavy",
            "Balanced",
            "Creative",
        ]

    def test_empty_grid_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            AutoTuner(Mock(), strategies=())

    def test_apply_overrides_all_three_parameters(self):
        config = DEFAULT_STRATEGIES[2].apply(RetrievalConfig(recall_k=50))

        assert (config.min_confidence, config.temperature, config.vector_weight) == (
            0.1,
            0.0,
            0.3,
        )
        assert config.recall_k == 50
