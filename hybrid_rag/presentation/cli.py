import argparse
import asyncio
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional

from hybrid_rag.config.settings import settings
from hybrid_rag.container import configure_container, container
from hybrid_rag.core.errors import HybridRagError
from hybrid_rag.core.models.benchmark import TuningOutcome, TuningStepResult
from hybrid_rag.core.models.chat import ChatHistory
from hybrid_rag.core.models.config import RetrievalConfig
from hybrid_rag.core.models.result import PipelineEvent
from hybrid_rag.core.services.chat_service import ChatService
from hybrid_rag.core.services.evaluation_service import EvaluationHarness
from hybrid_rag.core.services.health_service import HealthService
from hybrid_rag.core.services.tuning_service import AutoTuner
from hybrid_rag.infrastructure.cases.case_files import load_cases

logging.basicConfig(level=logging.INFO, format="%(message)s", stream=sys.stderr)
logger = logging.getLogger(__name__)


def _print_json(data) -> None:
    print(json.dumps(data, ensure_ascii=False, indent=2, default=str))


def _load_config(path: Optional[str], base: RetrievalConfig) -> RetrievalConfig:
    if not path:
        return base
    with open(path, encoding="utf-8") as f:
        overrides = json.load(f)
    return RetrievalConfig.from_dict({**base.to_dict(), **overrides})


def apply_tuning_outcome(
    chat: ChatService, outcome: TuningOutcome, save_path: Optional[str] = None
) -> bool:
    """Install an accepted outcome and optionally save it. Rejected ones change nothing."""
    if not outcome.accepted:
        logger.warning(
            f"No strategy reached the target (best {outcome.best.strategy_name}: "
            f"{outcome.best.score:.3f}), keeping the current config"
        )
        return False

    chat.install_config(outcome.config)
    if save_path:
        with open(save_path, "w", encoding="utf-8") as f:
            json.dump(outcome.config.to_dict(), f, ensure_ascii=False, indent=2)
        logger.info(f"Saved config to {save_path}")
    return True


async def _log_events(events: asyncio.Queue) -> None:
    while True:
        event: PipelineEvent = await events.get()
        top = ", ".join(f"{c.title}={c.score}" for c in event.candidates[:3])
        logger.info(f"[{event.elapsed_ms}ms] {event.step.value} {top}".rstrip())


async def cmd_ask(args: argparse.Namespace) -> int:
    """Answer one question."""
    chat = container.resolve(ChatService)
    config = _load_config(args.config, chat.default_config)

    events: asyncio.Queue = asyncio.Queue(maxsize=32)
    cancel_event = asyncio.Event()
    if args.timeout:
        asyncio.get_running_loop().call_later(args.timeout, cancel_event.set)

    printer = asyncio.ensure_future(_log_events(events))
    try:
        result = await chat.ask(
            args.question,
            config=config,
            category_filter=args.category,
            events=events,
            cancel_event=cancel_event,
            advisor=args.advisor,
        )
    finally:
        printer.cancel()
        await asyncio.gather(printer, return_exceptions=True)

    _print_json(
        {
            "text": result.text,
            "status": result.status.value,
            "error": result.error,
            "sources": [asdict(s) for s in result.sources],
            "debug_info": asdict(result.debug_info) if result.debug_info else None,
        }
    )
    return 0 if result.ok else 1


async def cmd_chat(args: argparse.Namespace) -> int:
    """Interactive session with bounded history."""
    chat = container.resolve(ChatService)
    config = _load_config(args.config, chat.default_config)
    history = ChatHistory(max_messages=8)

    while True:
        try:
            question = (await asyncio.to_thread(input, "> ")).strip()
        except EOFError:
            return 0
        if not question:
            continue
        if question in ("exit", "quit"):
            return 0

        result = await chat.ask(
            question,
            history=history.recent(4),
            config=config,
            category_filter=args.category,
        )
        print(result.text)
        if result.sources:
            print("  منابع: " + ", ".join(s.title for s in result.sources))
        if result.ok:
            history.record(question, result.text)


async def cmd_benchmark(args: argparse.Namespace) -> int:
    """Run the evaluation harness over a case file."""
    harness = container.resolve(EvaluationHarness)
    chat = container.resolve(ChatService)
    config = _load_config(args.config, chat.default_config)

    run = await harness.run_benchmark(load_cases(args.cases), config)

    if args.export_finetuning:
        records = harness.to_finetuning_records(run, min_score=settings.finetuning_min_score)
        harness.export_jsonl(records, Path(args.export_finetuning))

    summary = asdict(run)
    if not args.full:
        for result in summary["results"]:
            result.pop("context", None)
    _print_json(summary)
    return 0


async def cmd_tune(args: argparse.Namespace) -> int:
    """Search the strategy grid; install and optionally save an accepted winner."""
    tuner = container.resolve(AutoTuner)
    chat = container.resolve(ChatService)
    base = _load_config(args.config, chat.default_config)

    def report(step: TuningStepResult) -> None:
        mark = "PASS" if step.passed else "----"
        logger.info(f"{mark} {step.strategy_name}: {step.score:.3f}")

    outcome = await tuner.tune(load_cases(args.cases), base, on_step=report)
    apply_tuning_outcome(chat, outcome, args.save)

    _print_json(
        {
            "accepted": outcome.accepted,
            "strategy": outcome.best.strategy_name,
            "score": outcome.best.score,
            "config": outcome.config.to_dict(),
            "steps": [
                {"strategy": s.strategy_name, "score": s.score, "passed": s.passed}
                for s in outcome.steps
            ],
        }
    )
    return 0 if outcome.accepted else 2


async def cmd_health(args: argparse.Namespace) -> int:
    """Check provider connectivity."""
    health = container.resolve(HealthService)
    results = await health.check()
    _print_json({r.name: {"status": r.status, "latency_ms": r.latency_ms} for r in results})
    return 0 if all(r.available for r in results) else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hybrid-rag")
    sub = parser.add_subparsers(dest="command", required=True)

    ask = sub.add_parser("ask", help="answer one question")
    ask.add_argument("question")
    ask.add_argument("--category")
    ask.add_argument("--config", help="JSON file with retrieval overrides")
    ask.add_argument("--advisor", action="store_true", help="support-advisor answer style")
    ask.add_argument("--timeout", type=float, help="cancel after this many seconds")
    ask.set_defaults(handler=cmd_ask)

    chat = sub.add_parser("chat", help="interactive session")
    chat.add_argument("--category")
    chat.add_argument("--config")
    chat.set_defaults(handler=cmd_chat)

    bench = sub.add_parser("benchmark", help="evaluate a case file")
    bench.add_argument("cases")
    bench.add_argument("--config")
    bench.add_argument("--export-finetuning", metavar="OUT.jsonl")
    bench.add_argument("--full", action="store_true", help="include retrieved context")
    bench.set_defaults(handler=cmd_benchmark)

    tune = sub.add_parser("tune", help="auto-tune retrieval strategy")
    tune.add_argument("cases")
    tune.add_argument("--config")
    tune.add_argument("--save", metavar="CONFIG.json")
    tune.set_defaults(handler=cmd_tune)

    health = sub.add_parser("health", help="check provider connectivity")
    health.set_defaults(handler=cmd_health)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        configure_container(settings)
        return asyncio.run(args.handler(args))
    except (HybridRagError, ValueError, OSError) as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130


if __name__ == "__main__":
    sys.exit(main())
