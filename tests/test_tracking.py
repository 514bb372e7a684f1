"""Tests for the MLflow helpers that do not need a tracking server."""

import pytest
from Laplace import GlobalMetrics, GlobalParams, LocalMetrics
from utils.mlflow import setup_mlflow_tracking, timeseries_frame


def test_tracking_off():
    assert setup_mlflow_tracking(mode="off") is False


def test_unknown_tracking_mode():
    with pytest.raises(ValueError):
        setup_mlflow_tracking(mode="carrier-pigeon")


def test_timeseries_frame():
    ts = LocalMetrics()
    ts.norm_history.extend([3.0, 2.0, 1.0])
    ts.compute_times.extend([0.1, 0.1, 0.1])

    df = timeseries_frame(ts)

    assert list(df["iteration"]) == [0, 1, 2]
    assert list(df["norm_history"]) == [3.0, 2.0, 1.0]
    assert "halo_times" not in df.columns


def test_params_to_mlflow():
    params = GlobalParams(NB=64, MB=32, P=2, n_ranks=4, early_exit=True)
    logged = params.to_mlflow()

    assert logged["Q"] == 2
    assert logged["early_exit"] == 1
    assert params.global_shape == (64, 128)


def test_metrics_to_mlflow_drops_missing():
    logged = GlobalMetrics(converged=True, iterations=5).to_mlflow()
    assert logged == {"converged": 1, "iterations": 5}
