from __future__ import annotations

import argparse
import dataclasses
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import yaml
from rich.console import Console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from stake_caps.config import load_config
from stake_caps.core.derivation import cap_curve
from stake_caps.errors import StakeCapsError
from stake_caps.integration.ledger_io import assignment_payload, load_snapshot_json, payload_commitment_hex
from stake_caps.sim.runner import RunConfig, SimulationRunner, evaluate_snapshot, validate_run_config
from stake_caps.sim.types import RunSummary, TrialOutcome
from stake_caps.state.amounts import U64_MAX


logger = logging.getLogger("stake_caps.sweep")

SCHEMA = "stake_caps/sweep/v1"

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130


class RichProgressReporter:
    """Drives a rich progress bar; callbacks arrive serialized from the runner."""

    def __init__(self, progress: Progress, total: int) -> None:
        self.progress = progress
        self.failed = 0
        self.task_id = progress.add_task("trials", total=total, failed=0)

    def on_trial_complete(self, outcome: TrialOutcome, completed: int, total: int) -> None:
        if not outcome.passed:
            self.failed += 1
        self.progress.update(self.task_id, completed=completed, failed=self.failed)

    def on_run_complete(self, summary: RunSummary) -> None:
        self.progress.update(self.task_id, completed=summary.trials_completed)


def _curve_totals(threshold: int) -> List[int]:
    points = {0, threshold // 2, threshold, threshold + 1, U64_MAX}
    for mult in (2, 5, 10, 100, 1000):
        points.add(min(threshold * mult, U64_MAX))
    return sorted(points)


def _summary_table(summary: RunSummary) -> Table:
    table = Table(title=f"stake-cap sweep ({summary.state.value})")
    table.add_column("metric")
    table.add_column("value", justify="right")
    table.add_row("trials", f"{summary.trials_completed}/{summary.trials_requested}")
    table.add_row("passed", str(summary.passed))
    table.add_row("failed", str(summary.failed))
    table.add_row("malformed", str(summary.malformed))
    for name, count in sorted(summary.failures_by_invariant.items()):
        table.add_row(f"  {name}", str(count))
    for mode, count in sorted(summary.trials_by_mode.items()):
        table.add_row(f"mode {mode}", str(count))
    table.add_row("min cap", "-" if summary.min_cap is None else f"{summary.min_cap:,}")
    table.add_row("max cap", "-" if summary.max_cap is None else f"{summary.max_cap:,}")
    return table


def _config_dict(config: RunConfig) -> Dict[str, Any]:
    gen = config.generator
    return {
        "params": gen.params.to_dict(),
        "generator": {
            "publisher_range": list(gen.publisher_range),
            "stake_range": list(gen.stake_range),
            "max_clusters": gen.max_clusters,
            "cluster_spread_bps": gen.cluster_spread_bps,
            "outlier_bps": gen.outlier_bps,
            "outlier_multiplier": gen.outlier_multiplier,
            "noise_frequency": str(gen.noise_frequency),
            "rng_algorithm": gen.rng_algorithm,
        },
        "run": {
            "trials": config.trials,
            "base_seed": config.base_seed,
            "workers": config.workers,
            "batch_size": config.batch_size,
            "mode_mix": {mode.value: weight for mode, weight in config.mode_mix},
        },
    }


def _cmd_curve(config: RunConfig, console: Console) -> Tuple[Dict[str, Any], int]:
    params = config.generator.params
    rows = cap_curve(params, _curve_totals(params.concentration_threshold))
    table = Table(title="cap curve")
    table.add_column("total stake", justify="right")
    table.add_column("cap", justify="right")
    for total, cap in rows:
        table.add_row(f"{total:,}", f"{cap:,}")
    console.print(table)
    return {"mode": "curve", "curve": [{"total_stake": t, "cap": c} for t, c in rows]}, EXIT_OK


def _cmd_snapshot(config: RunConfig, path: str, console: Console) -> Tuple[Dict[str, Any], int]:
    params = config.generator.params
    snapshot = load_snapshot_json(path)
    assignment, violations = evaluate_snapshot(snapshot, params)
    payload = assignment_payload(assignment, params, snapshot.slot)
    commitment = payload_commitment_hex(payload)
    console.print(f"snapshot: {len(snapshot)} publishers, total stake {snapshot.total_stake:,}, slot {snapshot.slot}")
    console.print(f"cap: {next(iter(assignment))[1]:,}" if len(assignment) else "cap: (no publishers)")
    console.print(f"commitment: {commitment}")
    if violations:
        console.print(f"[bold red]violations:[/bold red] {', '.join(violations)}")
    report = {
        "mode": "snapshot",
        "source": str(path),
        "violations": violations,
        "payload": payload,
        "commitment": commitment,
    }
    return report, EXIT_VIOLATIONS if violations else EXIT_OK


def _cmd_replay(config: RunConfig, trial_index: int, console: Console) -> Tuple[Dict[str, Any], int]:
    runner = SimulationRunner(config)
    outcome = runner.replay(trial_index)
    console.print(f"trial {trial_index}: seed={outcome.seed} mode={outcome.mode.value}")
    report: Dict[str, Any] = {
        "mode": "replay",
        "trial_index": trial_index,
        "seed": outcome.seed,
        "generator_mode": outcome.mode.value,
        "violations": list(outcome.violations),
        "error": outcome.error,
    }
    if outcome.scenario is not None:
        report["fingerprint"] = outcome.scenario.fingerprint()
        report["scenario"] = outcome.scenario.to_dict()
        console.print(f"fingerprint: {report['fingerprint']}")
    if outcome.passed:
        console.print("[green]passed[/green]")
    else:
        console.print(f"[bold red]failed:[/bold red] {outcome.error or ', '.join(outcome.violations)}")
    return report, EXIT_OK if outcome.passed else EXIT_VIOLATIONS


def _cmd_run(config: RunConfig, console: Console, *, show_progress: bool) -> Tuple[Dict[str, Any], int]:
    columns = (
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("failed={task.fields[failed]}"),
        TimeElapsedColumn(),
    )
    with Progress(*columns, console=console, disable=not show_progress) as progress:
        reporter = RichProgressReporter(progress, config.trials)
        runner = SimulationRunner(config, reporter=reporter)
        interrupted = False
        try:
            summary = runner.run()
        except KeyboardInterrupt:
            runner.cancel()
            interrupted = True
            summary = runner.partial_summary()
            console.print("[yellow]interrupted[/yellow]")
    console.print(_summary_table(summary))
    for failing in summary.failing_trials[:20]:
        console.print(
            f"  trial {failing.trial_index} seed={failing.seed} mode={failing.mode.value}: {', '.join(failing.reasons)}"
        )
    report = {"mode": "run", "interrupted": interrupted, "summary": summary.to_dict()}
    if interrupted:
        return report, EXIT_INTERRUPTED
    return report, EXIT_OK if summary.failed == 0 else EXIT_VIOLATIONS


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Randomized stake-cap derivation sweep with invariant checks")
    ap.add_argument("--config", type=str, default="", help="YAML config (parameters/generator/run)")
    ap.add_argument("--trials", type=int, default=None)
    ap.add_argument("--seed", type=int, default=None, help="base seed")
    ap.add_argument("--workers", type=int, default=None)
    ap.add_argument("--replay", type=int, default=None, metavar="TRIAL_INDEX")
    ap.add_argument("--snapshot", type=str, default="", help="evaluate a ledger snapshot export (JSON)")
    ap.add_argument("--curve", action="store_true", help="tabulate the cap curve and exit")
    ap.add_argument("--no-progress", action="store_true")
    ap.add_argument("--log-level", type=str, default="WARNING")
    ap.add_argument("--out", type=str, default="")
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    console = Console()
    start = time.perf_counter()

    try:
        config = load_config(args.config) if args.config else RunConfig()
    except (OSError, TypeError, yaml.YAMLError) as exc:
        print(f"error: cannot load config: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except StakeCapsError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        overrides = {}
        if args.trials is not None:
            overrides["trials"] = args.trials
        if args.seed is not None:
            overrides["base_seed"] = args.seed
        if args.workers is not None:
            overrides["workers"] = args.workers
        if overrides:
            config = dataclasses.replace(config, **overrides)
        validate_run_config(config)

        if args.curve:
            report, code = _cmd_curve(config, console)
        elif args.snapshot:
            report, code = _cmd_snapshot(config, args.snapshot, console)
        elif args.replay is not None:
            if args.replay < 0:
                raise SystemExit("replay index must be non-negative")
            report, code = _cmd_replay(config, args.replay, console)
        else:
            report, code = _cmd_run(config, console, show_progress=not args.no_progress)
    except (StakeCapsError, OSError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    report = {
        "schema": SCHEMA,
        "timestamp_unix": int(time.time()),
        "elapsed_ms": int((time.perf_counter() - start) * 1000),
        "config": _config_dict(config),
        **report,
    }
    payload = json.dumps(report, indent=2, sort_keys=True)
    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(payload + "\n", encoding="utf-8")
        logger.info("wrote %s", out_path)
    return code


if __name__ == "__main__":
    raise SystemExit(main())
