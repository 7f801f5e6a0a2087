import argparse, time
import numpy as np
from pathlib import Path

from hosd_optimizer import (
    DominanceOptimizer,
    ObjectiveKind,
    OptimizerConfig,
    ScenarioSet,
    ViolationScanner,
)


def best_single_asset(xi, probs):
    # unconstrained max-return portfolio: all weight on the highest mean asset
    w = np.zeros(xi.shape[0])
    w[int(np.argmax(xi @ probs))] = 1.0
    return w


def equal_weight(n):
    return np.ones(n) / n


def run_once(scenarios, p, seed=42, max_eval=200, max_rounds=20):
    cfg = OptimizerConfig(p=p, seed=seed, max_eval=max_eval, max_rounds=max_rounds)
    opt = DominanceOptimizer(cfg)
    t0 = time.perf_counter()
    res = opt.optimize(scenarios, ObjectiveKind.MAX_RETURN)
    dt = time.perf_counter() - t0
    return res, dt


def metrics(w, scenarios, p):
    er = float((scenarios.returns @ scenarios.probs) @ w)
    report = ViolationScanner(scenarios, p=p).scan(w)
    return dict(
        expected_return=er,
        max_gap=report.max_value,
        dominates=not report.violated,
        l1=np.abs(w).sum(),
    )


def main():
    ap = argparse.ArgumentParser()
    ap.add_argument("--d", type=int, default=5)
    ap.add_argument("--n", type=int, default=15)
    ap.add_argument("--p", type=float, default=2.0)
    ap.add_argument("--seed", type=int, default=7)
    ap.add_argument("--out", type=str, default="bench_results.csv")
    args = ap.parse_args()

    rng = np.random.default_rng(args.seed)

    # synthetic scenario returns; benchmark = equally weighted portfolio
    xi = rng.normal(0.05, 0.1, size=(args.d, args.n))
    scenarios = ScenarioSet.equal_weighted(xi)

    res, dt = run_once(scenarios, args.p, seed=args.seed)

    rows = []
    rows.append(dict(model="equal_weight", **metrics(equal_weight(args.d), scenarios, args.p), time=0.0, rounds=0))
    rows.append(
        dict(model="best_asset", **metrics(best_single_asset(xi, scenarios.probs), scenarios, args.p), time=0.0, rounds=0)
    )
    rows.append(dict(model="hosd_newton", **metrics(res.weights, scenarios, args.p), time=dt, rounds=res.rounds))

    import csv

    out_dir = Path(__file__).resolve().parent
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / args.out
    with open(out_path, "w", newline="") as f:
        w = csv.DictWriter(f, fieldnames=list(rows[0].keys()))
        w.writeheader()
        w.writerows(rows)
    print("Wrote", out_path)
if __name__ == "__main__":
    main()
