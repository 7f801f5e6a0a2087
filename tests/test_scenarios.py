from pathlib import Path

import numpy as np
import pytest

from hosd_optimizer.errors import ScenarioError
from hosd_optimizer.scenarios import ScenarioSet, annualized_returns, load_scenarios, time_weights


def test_equal_weighted_benchmark_and_probs(two_asset_returns):
    scen = ScenarioSet.equal_weighted(two_asset_returns)
    assert scen.n_assets == 2 and scen.n_scenarios == 2
    assert np.allclose(scen.benchmark, [0.06, 0.035])
    assert np.allclose(scen.probs, [0.5, 0.5])
    assert np.array_equal(scen.probs, scen.benchmark_probs)


def test_scenario_arrays_are_read_only(two_asset_scenarios):
    with pytest.raises(ValueError):
        two_asset_scenarios.returns[0, 0] = 1.0


def test_scenario_validation():
    R = np.array([[0.1, 0.2]])
    with pytest.raises(ScenarioError):
        ScenarioSet(R, [0.1, 0.2], [0.6, 0.6], [0.5, 0.5])
    with pytest.raises(ScenarioError):
        ScenarioSet(R, [0.1, 0.2], [0.5, 0.5, 0.0], [0.5, 0.5])
    with pytest.raises(ScenarioError):
        ScenarioSet(R, [0.1, 0.2], [1.5, -0.5], [0.5, 0.5])
    with pytest.raises(ScenarioError):
        ScenarioSet(np.array([[np.nan, 0.2]]), [0.1, 0.2], [0.5, 0.5], [0.5, 0.5])
    # ScenarioError is also a ValueError
    with pytest.raises(ValueError):
        ScenarioSet(R, [], [0.5, 0.5], [])


def test_benchmark_may_have_its_own_scenarios():
    scen = ScenarioSet(
        returns=np.array([[0.1, 0.2], [0.0, 0.1]]),
        benchmark=[0.05, 0.06, 0.07],
        probs=[0.5, 0.5],
        benchmark_probs=[0.2, 0.3, 0.5],
    )
    assert scen.benchmark.shape == (3,)


def test_annualized_returns():
    prices = np.array([[100.0, 110.0, 121.0], [50.0, 50.0, 25.0]])
    times = [0.0, 0.5, 1.0]
    xi = annualized_returns(prices, times)
    assert xi.shape == (2, 2)
    assert np.allclose(xi[0], np.log(1.1) / 0.5)
    assert np.allclose(xi[1], [0.0, np.log(0.5) / 0.5])


def test_annualized_returns_validation():
    with pytest.raises(ScenarioError):
        annualized_returns([[1.0, 2.0]], [0.0, 0.0])
    with pytest.raises(ScenarioError):
        annualized_returns([[1.0, -2.0]], [0.0, 1.0])
    with pytest.raises(ScenarioError):
        annualized_returns([[1.0, 2.0, 3.0]], [0.0, 1.0])


def test_time_weights():
    w = time_weights([0.0, 0.25, 1.0])
    assert np.allclose(w, [0.25, 0.75])
    assert w.sum() == pytest.approx(1.0)
    with pytest.raises(ScenarioError):
        time_weights([1.0])


def test_load_scenarios_returns_panel(tmp_path: Path):
    path = tmp_path / "returns.csv"
    path.write_text("date,A,B\n2020-01-01,0.10,0.02\n2020-01-02,0.04,0.03\n", encoding="utf-8")
    scen = load_scenarios(path)
    assert np.allclose(scen.returns, [[0.10, 0.04], [0.02, 0.03]])
    assert np.allclose(scen.benchmark, [0.06, 0.035])
    assert np.allclose(scen.probs, [0.5, 0.5])


def test_load_scenarios_from_prices_with_benchmark(tmp_path: Path):
    path = tmp_path / "prices.csv"
    path.write_text("t,A\n0.0,100\n0.25,110\n1.0,121\n", encoding="utf-8")
    bench = tmp_path / "bench.csv"
    bench.write_text("t,IDX\n0.0,10\n0.25,10.5\n1.0,11\n", encoding="utf-8")
    scen = load_scenarios(path, prices=True, benchmark_path=bench)
    assert np.allclose(scen.returns[0], [np.log(1.1) / 0.25, np.log(1.1) / 0.75])
    assert np.allclose(scen.probs, [0.25, 0.75])
    assert np.allclose(scen.benchmark, [np.log(1.05) / 0.25, np.log(11 / 10.5) / 0.75])


def test_load_scenarios_date_axis_in_years(tmp_path: Path):
    path = tmp_path / "prices.csv"
    path.write_text("date,A\n2020-01-01,100\n2020-07-02,110\n2021-01-01,121\n", encoding="utf-8")
    scen = load_scenarios(path, prices=True)
    assert scen.returns.shape == (1, 2)
    assert scen.probs.sum() == pytest.approx(1.0)
    assert (scen.returns > 0).all()


def test_load_scenarios_rejects_missing_columns(tmp_path: Path):
    path = tmp_path / "empty.csv"
    path.write_text("date\n2020-01-01\n", encoding="utf-8")
    with pytest.raises(ScenarioError):
        load_scenarios(path)


def test_load_scenarios_assets_in_rows(tmp_path: Path):
    path = tmp_path / "returns.csv"
    path.write_text("asset,2020-01-01,2020-01-02\nA,0.10,0.04\nB,0.02,0.03\n", encoding="utf-8")
    scen = load_scenarios(path, layout="assets_in_rows")
    assert np.allclose(scen.returns, [[0.10, 0.04], [0.02, 0.03]])
    assert np.allclose(scen.benchmark, [0.06, 0.035])


def test_load_scenarios_assets_in_rows_from_prices(tmp_path: Path):
    path = tmp_path / "prices.csv"
    path.write_text("asset,0.0,0.25,1.0\nA,100,110,121\n", encoding="utf-8")
    bench = tmp_path / "bench.csv"
    bench.write_text("name,0.0,0.25,1.0\nIDX,10,10.5,11\n", encoding="utf-8")
    scen = load_scenarios(path, prices=True, benchmark_path=bench, layout="assets_in_rows")
    assert np.allclose(scen.returns[0], [np.log(1.1) / 0.25, np.log(1.1) / 0.75])
    assert np.allclose(scen.probs, [0.25, 0.75])
    assert np.allclose(scen.benchmark, [np.log(1.05) / 0.25, np.log(11 / 10.5) / 0.75])


def test_load_scenarios_rejects_unknown_layout(tmp_path: Path):
    path = tmp_path / "returns.csv"
    path.write_text("date,A\n2020-01-01,0.1\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_scenarios(path, layout="columns")


def test_benchmark_file_must_hold_one_series(tmp_path: Path):
    path = tmp_path / "returns.csv"
    path.write_text("date,A\n2020-01-01,0.1\n2020-01-02,0.2\n", encoding="utf-8")
    bench = tmp_path / "bench.csv"
    bench.write_text("date,X,Y\n2020-01-01,0.1,0.1\n2020-01-02,0.2,0.2\n", encoding="utf-8")
    with pytest.raises(ScenarioError):
        load_scenarios(path, benchmark_path=bench)
