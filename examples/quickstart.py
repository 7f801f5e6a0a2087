import numpy as np
from hosd_optimizer import DominanceOptimizer, ObjectiveKind, OptimizerConfig, ScenarioSet

rng = np.random.default_rng(123)
d, n = 5, 10
xi = rng.random((d, n))  # replace with the scenario returns of interest
scenarios = ScenarioSet.equal_weighted(xi)

opt = DominanceOptimizer(OptimizerConfig(p=2.0, max_eval=200, seed=123))
res = opt.optimize(scenarios, ObjectiveKind.MAX_RETURN)
print("Optimal x:", np.round(res.weights, 4), "| Sum w:", round(res.weights.sum(), 6))
print("Optimal lambda:", res.lam, "| mu:", res.mu, "| t:", res.threshold)
print("Active thresholds:", res.thresholds)
print("Maximized portfolio return:", round(res.objective_value, 6), "| stabilized:", res.stabilized)

risk = opt.optimize(scenarios, ObjectiveKind.MIN_RISK)
print("Min-risk x:", np.round(risk.weights, 4), "| q:", risk.quantile, "| risk:", round(risk.objective_value, 6))
