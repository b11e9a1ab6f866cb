"""Evaluation harness - answer-quality scoring and benchmark runs."""

import asyncio
import json
import logging
import re
import time
from pathlib import Path
from typing import Iterable, Optional, Sequence

import numpy as np

from ..errors import ProviderError
from ..models.benchmark import (
    AnswerScore,
    BenchmarkCase,
    BenchmarkResult,
    BenchmarkRun,
    FineTuningRecord,
)
from ..models.config import RetrievalConfig
from ..prompts import FAITHFULNESS_PROMPT, RELEVANCE_PROMPT
from ..protocols.embedder import EmbeddingProvider
from ..protocols.llm import CompletionProvider
from ..strategies.scoring import cosine_similarity
from ..strategies.term_processor import TermProcessor, tokenize
from .chat_service import ChatService

logger = logging.getLogger(__name__)

_JUDGE_NUMBER_RE = re.compile(r"\d+(?:[.٫]\d+)?")


class EvaluationHarness:
    """Scores generated answers against ground truth."""

    # Raw cosine of the embedding model rarely exceeds ~0.9 even for
    # paraphrases, so the practical range is stretched onto [0, 1].
    CALIBRATION_RAW = (0.0, 0.5, 0.65, 0.75, 0.82, 0.88)
    CALIBRATION_SCORE = (0.0, 0.1, 0.4, 0.7, 0.85, 1.0)

    RECALL_DOMINANCE = 0.8
    BASE_WEIGHT = 0.7
    JUDGE_WEIGHT = 0.3
    FUZZY_MIN_LENGTH = 4
    MAX_JUDGE_CONTEXT_CHARS = 6000

    def __init__(
        self,
        chat_service: ChatService,
        embedder: EmbeddingProvider,
        llm: CompletionProvider,
        term_processor: Optional[TermProcessor] = None,
        judge_enabled: bool = True,
        pass_threshold: float = 0.6,
        judge_temperature: float = 0.0,
        model_name: str = "",
    ):
        """Initialize harness.

        Args:
            chat_service: Query facade used to answer benchmark questions.
            embedder: Embedding provider for answer/ground-truth similarity.
            llm: Completion provider acting as faithfulness/relevance judge.
            term_processor: Stop-word tables for keyword recall.
            judge_enabled: Ask the judge model for faithfulness and relevance.
            pass_threshold: Composite score counted as a pass.
            judge_temperature: Sampling temperature for judge calls.
            model_name: Recorded on exported fine-tuning records.
        """
        self._chat = chat_service
        self._embedder = embedder
        self._llm = llm
        self._terms = term_processor or TermProcessor()
        self._judge_enabled = judge_enabled
        self._pass_threshold = pass_threshold
        self._judge_temperature = judge_temperature
        self._model_name = model_name

    @property
    def pass_threshold(self) -> float:
        return self._pass_threshold

    def keyword_recall(self, ground_truth: str, generated: str) -> float:
        """Fraction of ground-truth content tokens found in the answer.

        A token counts when it appears verbatim, or when one of the two
        tokens contains the other and the contained one is at least four
        characters long.
        """
        expected = list(dict.fromkeys(self._terms.content_tokens(ground_truth)))
        if not expected:
            return 1.0

        produced = set(tokenize(generated))
        if not produced:
            return 0.0

        hits = sum(1 for token in expected if self._token_found(token, produced))
        return hits / len(expected)

    def _token_found(self, token: str, produced: set[str]) -> bool:
        if token in produced:
            return True
        for other in produced:
            if len(token) >= self.FUZZY_MIN_LENGTH and token in other:
                return True
            if len(other) >= self.FUZZY_MIN_LENGTH and other in token:
                return True
        return False

    def calibrate_similarity(self, raw: float) -> float:
        """Map raw cosine similarity through the calibration curve."""
        return float(np.interp(raw, self.CALIBRATION_RAW, self.CALIBRATION_SCORE))

    def composite_score(
        self,
        keyword_recall: float,
        vector_score: float,
        faithfulness: Optional[float] = None,
        relevance: Optional[float] = None,
    ) -> float:
        if keyword_recall > self.RECALL_DOMINANCE:
            return max(keyword_recall, vector_score)

        base = max(vector_score, keyword_recall)
        judged = [s for s in (faithfulness, relevance) if s is not None]
        if not judged:
            return base
        return self.BASE_WEIGHT * base + self.JUDGE_WEIGHT * (sum(judged) / len(judged))

    async def judge_faithfulness(self, answer: str, context: str) -> Optional[float]:
        if not context.strip():
            return None
        prompt = FAITHFULNESS_PROMPT.format(
            context=context[: self.MAX_JUDGE_CONTEXT_CHARS], answer=answer
        )
        return await self._judge(prompt, "faithfulness")

    async def judge_relevance(self, question: str, answer: str) -> Optional[float]:
        prompt = RELEVANCE_PROMPT.format(question=question, answer=answer)
        return await self._judge(prompt, "relevance")

    async def _judge(self, prompt: str, label: str) -> Optional[float]:
        try:
            raw = await self._llm.complete(
                [{"role": "user", "content": prompt}], self._judge_temperature
            )
        except Exception as e:
            logger.warning(f"[judge] {label} call failed: {e}")
            return None

        match = _JUDGE_NUMBER_RE.search(raw or "")
        if match is None:
            logger.warning(f"[judge] Unparseable {label} reply: {(raw or '')[:40]!r}")
            return None
        value = float(match.group().replace("٫", "."))
        return min(max(value, 0.0), 1.0)

    async def score_answer(
        self,
        question: str,
        ground_truth: str,
        answer: str,
        context: str = "",
    ) -> AnswerScore:
        """Score one answer. All components are returned with the composite."""
        recall = self.keyword_recall(ground_truth, answer)

        truth_vec, answer_vec = await asyncio.gather(
            self._embedder.embed(ground_truth), self._embedder.embed(answer)
        )
        vector = self.calibrate_similarity(cosine_similarity(truth_vec, answer_vec))

        faithfulness = relevance = None
        if self._judge_enabled:
            faithfulness, relevance = await asyncio.gather(
                self.judge_faithfulness(answer, context),
                self.judge_relevance(question, answer),
            )

        return AnswerScore(
            score=self.composite_score(recall, vector, faithfulness, relevance),
            keyword_recall=recall,
            vector_score=vector,
            faithfulness=faithfulness,
            relevance=relevance,
        )

    async def evaluate_case(
        self, case: BenchmarkCase, config: Optional[RetrievalConfig] = None
    ) -> BenchmarkResult:
        """Answer one case through the chat service and score it."""
        started = time.perf_counter()
        result = await self._chat.ask(case.question, config=config, advisor=case.is_ticket)

        if result.ok:
            try:
                scored = await self.score_answer(
                    case.question, case.ground_truth, result.text, result.context
                )
            except ProviderError as e:
                logger.error(f"Scoring failed for case {case.id}: {e}")
                scored = self._zero_score()
        else:
            logger.info(f"Case {case.id} produced no answer ({result.status.value})")
            scored = self._zero_score()

        return BenchmarkResult(
            case_id=case.id,
            question=case.question,
            ground_truth=case.ground_truth,
            generated_answer=result.text,
            similarity_score=scored.score,
            keyword_recall=scored.keyword_recall,
            vector_score=scored.vector_score,
            faithfulness_score=scored.faithfulness,
            relevance_score=scored.relevance,
            retrieved_sources=result.sources,
            time_taken_ms=int((time.perf_counter() - started) * 1000),
            context=result.context,
        )

    async def run_benchmark(
        self,
        cases: Sequence[BenchmarkCase],
        config: Optional[RetrievalConfig] = None,
    ) -> BenchmarkRun:
        """Evaluate every case concurrently and summarize.

        Raises:
            ValueError: No cases were given.
        """
        if not cases:
            raise ValueError("Benchmark requires at least one case")

        config = config or self._chat.default_config
        semaphore = asyncio.Semaphore(config.max_concurrency)

        async def run(case: BenchmarkCase) -> BenchmarkResult:
            async with semaphore:
                return await self.evaluate_case(case, config)

        results = await asyncio.gather(*(run(case) for case in cases))
        run_summary = self._summarize(results)
        logger.info(
            f"Benchmark: {run_summary.total_cases} cases, "
            f"avg={run_summary.avg_score:.3f}, pass={run_summary.pass_rate:.0%}"
        )
        return run_summary

    def _summarize(self, results: Sequence[BenchmarkResult]) -> BenchmarkRun:
        total = len(results)
        faithfulness = [r.faithfulness_score for r in results if r.faithfulness_score is not None]
        relevance = [r.relevance_score for r in results if r.relevance_score is not None]
        return BenchmarkRun(
            timestamp=time.time(),
            total_cases=total,
            avg_score=sum(r.similarity_score for r in results) / total,
            avg_faithfulness=sum(faithfulness) / len(faithfulness) if faithfulness else None,
            avg_relevance=sum(relevance) / len(relevance) if relevance else None,
            pass_rate=sum(1 for r in results if r.similarity_score >= self._pass_threshold) / total,
            avg_time_ms=sum(r.time_taken_ms for r in results) / total,
            results=tuple(results),
        )

    def to_finetuning_records(
        self, run: BenchmarkRun, min_score: float = 0.8
    ) -> list[FineTuningRecord]:
        """High-scoring answers as fine-tuning examples."""
        return [
            FineTuningRecord(
                prompt=r.question,
                response=r.generated_answer,
                context=r.context,
                score=r.similarity_score,
                source_ids=tuple(s.id for s in r.retrieved_sources),
                model=self._model_name,
            )
            for r in run.results
            if r.similarity_score >= min_score and r.generated_answer.strip()
        ]

    @staticmethod
    def export_jsonl(records: Iterable[FineTuningRecord], path: Path) -> int:
        """Write records as JSONL chat examples. Returns the record count."""
        count = 0
        with open(path, "w", encoding="utf-8") as f:
            for record in records:
                f.write(json.dumps(record.to_chat_record(), ensure_ascii=False) + "\n")
                count += 1
        logger.info(f"Exported {count} fine-tuning records to {path}")
        return count

    @staticmethod
    def _zero_score() -> AnswerScore:
        return AnswerScore(
            score=0.0, keyword_recall=0.0, vector_score=0.0, faithfulness=0.0, relevance=0.0
        )
