import numpy as np
import pytest

from hosd_optimizer.lagrangian import DecisionLayout, DecisionVector, LagrangianSystem
from hosd_optimizer.objectives import ObjectiveKind


def _finite_difference(fun, v, h=1e-6):
    cols = []
    for i in range(v.size):
        step = np.zeros_like(v)
        step[i] = h
        cols.append((fun(v + step) - fun(v - step)) / (2 * h))
    return np.column_stack(cols)


@pytest.mark.parametrize("with_quantile", [False, True])
def test_pack_unpack_round_trip(with_quantile):
    layout = DecisionLayout(3, with_quantile=with_quantile)
    decision = DecisionVector(
        x=np.array([0.2, 0.3, 0.5]),
        lam=-1.25,
        mu=0.75,
        nu=np.array([0.1, -0.2, 0.3]),
        t=0.0123,
        q=0.4 if with_quantile else None,
    )
    packed = layout.pack(decision)
    assert packed.shape == (layout.size,)
    back = layout.unpack(packed)
    assert np.array_equal(back.x, decision.x)
    assert np.array_equal(back.nu, decision.nu)
    assert (back.lam, back.mu, back.t, back.q) == (decision.lam, decision.mu, decision.t, decision.q)
    assert np.array_equal(layout.pack(back), packed)


def test_layout_independent_of_active_thresholds(two_asset_scenarios):
    base = LagrangianSystem(two_asset_scenarios)
    grown = base.with_threshold(0.05).with_threshold(0.055)
    assert grown.layout == base.layout
    decision = DecisionVector(x=[0.4, 0.6], lam=0.1, mu=0.2, nu=[0.0, 0.0], t=0.04)
    packed = base.layout.pack(decision)
    assert np.array_equal(grown.layout.pack(grown.layout.unpack(packed)), packed)


def test_pack_rejects_wrong_sizes():
    layout = DecisionLayout(2, with_quantile=True)
    with pytest.raises(ValueError):
        layout.pack(DecisionVector(x=[0.5, 0.5], lam=0.0, mu=0.0, nu=[0.0, 0.0], t=0.0))
    with pytest.raises(ValueError):
        layout.unpack(np.zeros(3))


def test_residual_length_grows_by_one_per_threshold(two_asset_scenarios):
    system = LagrangianSystem(two_asset_scenarios)
    d = two_asset_scenarios.n_assets
    assert system.base_length == 2 * d + 4
    v = np.zeros(system.layout.size)
    v[:d] = 0.5
    for k in range(1, 4):
        system = system.with_threshold(0.04 + 0.005 * k)
        assert len(system.thresholds) == k
        assert system.residual(v).shape == (system.base_length + k,)
        assert system.jacobian(v).shape == (system.base_length + k, system.layout.size)


def test_with_threshold_leaves_original_untouched(two_asset_scenarios):
    system = LagrangianSystem(two_asset_scenarios)
    grown = system.with_threshold(0.05)
    assert system.thresholds == ()
    assert grown.thresholds == (0.05,)


def test_risk_variant_adds_quantile_residual(two_asset_scenarios):
    system = LagrangianSystem(two_asset_scenarios, kind=ObjectiveKind.MIN_RISK, beta=0.5)
    assert system.layout.size == 2 * 2 + 4
    assert system.base_length == 2 * 2 + 5


def test_residual_blocks(two_asset_scenarios):
    system = LagrangianSystem(two_asset_scenarios)
    decision = DecisionVector(x=[0.7, -0.1], lam=0.02, mu=0.0, nu=[0.0, 0.3], t=0.05)
    r = system.residual(system.layout.pack(decision))
    mean = two_asset_scenarios.returns @ two_asset_scenarios.probs
    assert np.allclose(r[:2], mean - 0.02 + np.array([0.0, 0.3]))
    assert r[2] == pytest.approx(1.0 - 0.6)
    assert np.allclose(r[4:6], [0.0, -0.1])
    assert r[3] == pytest.approx(r[7])


@pytest.mark.parametrize("kind", [ObjectiveKind.MAX_RETURN, ObjectiveKind.MIN_RISK])
def test_jacobian_matches_finite_differences(two_asset_scenarios, kind):
    system = LagrangianSystem(two_asset_scenarios, p=3.0, kind=kind, beta=0.4).with_threshold(0.07)
    decision = DecisionVector(
        x=[0.3, 0.7],
        lam=0.01,
        mu=0.7,
        nu=[0.2, 0.1],
        t=0.05,
        q=-0.1 if kind is ObjectiveKind.MIN_RISK else None,
    )
    v = system.layout.pack(decision)
    J = system.jacobian(v)
    assert np.isfinite(J).all()
    assert np.allclose(J, _finite_difference(system.residual, v), rtol=1e-4, atol=1e-6)


def test_lagrangian_value_at_feasible_point(two_asset_scenarios):
    system = LagrangianSystem(two_asset_scenarios)
    decision = DecisionVector(x=[0.5, 0.5], lam=3.0, mu=2.0, nu=[1.0, 1.0], t=0.05)
    mean = two_asset_scenarios.returns @ two_asset_scenarios.probs
    # on the simplex, benchmark-equal portfolio: every penalty term vanishes
    assert system.lagrangian(system.layout.pack(decision)) == pytest.approx(float(mean @ [0.5, 0.5]))


def test_invalid_order_rejected(two_asset_scenarios):
    with pytest.raises(ValueError):
        LagrangianSystem(two_asset_scenarios, p=1.5)
    with pytest.raises(ValueError):
        LagrangianSystem(two_asset_scenarios, kind=ObjectiveKind.MIN_RISK, beta=1.0)
