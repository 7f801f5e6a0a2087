"""Command-line entry point: ``hosd-optimize``."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from pydantic import ValidationError

from .config import RunConfig, load_run_config
from .optimizer import DominanceOptimizer, logger as optimizer_logger
from .scenarios import load_scenarios


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hosd-optimize",
        description="Portfolio optimisation under higher-order stochastic dominance constraints",
    )
    parser.add_argument("--config", type=str, default=None, help="YAML/JSON run config")
    parser.add_argument("--csv", type=str, help="Scenario panel (rows=observations, columns=assets)")
    parser.add_argument("--benchmark-csv", dest="benchmark_csv", type=str, help="Benchmark series")
    parser.add_argument(
        "--layout", choices=["scenarios_in_rows", "assets_in_rows"], help="Orientation of the CSV panel"
    )
    parser.add_argument("--prices", action="store_true", default=None, help="Panel holds prices")
    parser.add_argument("--time-column", dest="time_column", type=str)
    parser.add_argument("--objective", choices=["max_return", "min_risk"])
    parser.add_argument("--p", type=float, help="Dominance order (>= 2)")
    parser.add_argument("--beta", type=float, help="Risk aversion for min_risk")
    parser.add_argument("--max-eval", dest="max_eval", type=int)
    parser.add_argument("--tol", type=float)
    parser.add_argument("--grid-step", dest="grid_step", type=float)
    parser.add_argument("--max-rounds", dest="max_rounds", type=int)
    parser.add_argument("--seed", type=int)
    parser.add_argument(
        "--on-newton-failure", dest="on_newton_failure", choices=["continue", "raise"]
    )
    parser.add_argument("--strict", action="store_true", default=None)
    parser.add_argument("--max-runtime", dest="max_runtime", type=float)
    parser.add_argument("--initial-weights", dest="initial_weights", type=float, nargs="+")
    parser.add_argument("--initial-quantile", dest="initial_quantile", type=float)
    parser.add_argument("--initial-lambda", dest="initial_lambda", type=float)
    parser.add_argument("--initial-mu", dest="initial_mu", type=float)
    parser.add_argument("--initial-nu", dest="initial_nu", type=float, nargs="+")
    parser.add_argument("--initial-threshold", dest="initial_threshold", type=float)
    parser.add_argument("--out", type=str, help="Write the JSON summary here")
    parser.add_argument(
        "--log-level", dest="log_level", choices=["DEBUG", "INFO", "WARNING", "ERROR"]
    )
    return parser


def _validate(blob: Dict[str, Any]) -> RunConfig:
    try:
        return RunConfig.model_validate(blob)
    except ValidationError as exc:
        lines = []
        for err in exc.errors():
            loc = ".".join(map(str, err.get("loc", []))) or "<root>"
            lines.append(f"{loc}: {err.get('msg')}")
        message = "Invalid config:\n  " + "\n  ".join(lines)
        raise SystemExit(message)


def main(args: Optional[Iterable[str]] = None) -> int:
    argv = list(args) if args is not None else sys.argv[1:]
    parsed = build_parser().parse_args(argv)

    blob: Dict[str, Any] = {}
    if parsed.config:
        blob.update(load_run_config(Path(parsed.config)))
    overrides = {k: v for k, v in vars(parsed).items() if k != "config" and v is not None}
    blob.update(overrides)
    if "csv" not in blob:
        raise SystemExit("Invalid config:\n  csv: must be provided via CLI or config")
    run = _validate(blob)

    logging.getLogger("hosd_optimizer").setLevel(run.log_level)
    optimizer_logger.setLevel(run.log_level)
    scenarios = load_scenarios(
        run.csv,
        prices=run.prices,
        benchmark_path=run.benchmark_csv,
        time_column=run.time_column,
        layout=run.layout,
    )
    optimizer = DominanceOptimizer(run.optimizer_config())
    initial = None
    if run.has_initial_values:
        try:
            initial = run.initial_decision(optimizer.initial_guess(scenarios, run.objective_kind))
        except ValueError as exc:
            raise SystemExit(f"Invalid config:\n  {exc}")
    result = optimizer.optimize(scenarios, run.objective_kind, initial=initial)

    payload = json.dumps(result.summary(), indent=2)
    if run.out:
        out_path = Path(run.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(payload + "\n", encoding="utf-8")
    else:
        print(payload)
    return 0 if result.stabilized else 1


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
