"""MLflow I/O utilities for experiment tracking.

This module provides helpers for:
- Setting up MLflow tracking (local file store or Databricks).
- Orchestrating MLflow runs (context manager for parent/nested runs).
- Logging parameters, metrics, per-iteration series and tables.
- Per-iteration tables as pandas DataFrames.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import asdict
from pathlib import Path

import mlflow
import pandas as pd

log = logging.getLogger(__name__)


def setup_mlflow_tracking(mode: str = "local") -> bool:
    """Configure MLflow tracking.

    Parameters
    ----------
    mode : str
        "local" (./mlruns), "databricks", or "off".

    Returns
    -------
    bool
        True if tracking is enabled.
    """
    if mode == "off":
        log.info("MLflow tracking disabled")
        return False
    if mode == "databricks":
        try:
            mlflow.login(backend="databricks", interactive=False)
            mlflow.set_tracking_uri("databricks")
        except Exception as e:
            raise RuntimeError(
                "MLflow Databricks setup failed. Ensure credentials are configured."
            ) from e
        log.info("Connected to Databricks MLflow tracking")
        return True
    if mode == "local":
        mlruns_uri = f"file://{Path.cwd() / 'mlruns'}"
        mlflow.set_tracking_uri(mlruns_uri)
        log.info(f"Using local MLflow tracking backend: {mlruns_uri}")
        return True
    raise ValueError(f"Unknown MLflow mode: {mode}")


def get_mlflow_client() -> mlflow.tracking.MlflowClient:
    """Get an MLflow tracking client."""
    return mlflow.tracking.MlflowClient()


@contextmanager
def start_mlflow_run_context(
    experiment_name: str, parent_run_name: str, child_run_name: str, tags: dict = None
):
    """Start a child run nested under a (reused) parent run of the same name.

    Parent runs are looked up by name, so repeated runs of one global grid
    size collect under a single parent. ``tags`` are set on the child.
    """
    mlflow.set_experiment(experiment_name)
    exp = mlflow.get_experiment_by_name(experiment_name)

    parent_runs = get_mlflow_client().search_runs(
        experiment_ids=[exp.experiment_id],
        filter_string=f"tags.mlflow.runName = '{parent_run_name}' AND tags.is_parent = 'true'",
        max_results=1,
    )
    parent_run_id = parent_runs[0].info.run_id if parent_runs else None

    with mlflow.start_run(
        run_id=parent_run_id, run_name=parent_run_name, tags={"is_parent": "true"}
    ):
        with mlflow.start_run(run_name=child_run_name, nested=True, tags=tags) as child:
            log.info(f"Started MLflow run '{child.info.run_name}' ({child.info.run_id})")
            yield child


def log_parameters(params: dict):
    """Log a dictionary of parameters to the active MLflow run."""
    mlflow.log_params(params)


def log_metrics_dict(metrics: dict):
    """Log a dictionary of metrics, skipping None values and casting bools."""
    filtered = {
        k: (int(v) if isinstance(v, bool) else v)
        for k, v in metrics.items()
        if v is not None
    }
    mlflow.log_metrics(filtered)


def log_timeseries_metrics(timeseries_data: object):
    """Log every list field of a dataclass as step-based metrics."""
    if not mlflow.active_run():
        return
    client = get_mlflow_client()
    run_id = mlflow.active_run().info.run_id
    timestamp = int(time.time() * 1000)

    metrics_to_log = [
        mlflow.entities.Metric(name, float(value), timestamp, step)
        for name, values in asdict(timeseries_data).items()
        for step, value in enumerate(values)
    ]
    for i in range(0, len(metrics_to_log), 1000):
        client.log_batch(run_id=run_id, metrics=metrics_to_log[i:i + 1000], synchronous=True)
    if metrics_to_log:
        log.info(f"Logged {len(metrics_to_log)} time-series metrics")


def timeseries_frame(timeseries_data: object) -> pd.DataFrame:
    """Per-iteration table (one row per iteration) from a LocalMetrics."""
    data = {k: v for k, v in asdict(timeseries_data).items() if v}
    df = pd.DataFrame(data)
    df.index.name = "iteration"
    return df.reset_index()


def log_timeseries_table(timeseries_data: object, artifact_file: str = "iterations.json"):
    """Log the per-iteration table as an MLflow table artifact."""
    mlflow.log_table(timeseries_frame(timeseries_data), artifact_file=artifact_file)
