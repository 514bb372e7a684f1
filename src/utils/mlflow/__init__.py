"""MLflow utilities for experiment tracking.

Provides:
- Tracking setup (local file store, Databricks, or disabled)
- Context manager for parent/child run orchestration
- Logging of parameters, metrics and per-iteration series
"""

from .io import (
    setup_mlflow_tracking,
    get_mlflow_client,
    start_mlflow_run_context,
    log_parameters,
    log_metrics_dict,
    log_timeseries_metrics,
    timeseries_frame,
    log_timeseries_table,
)

__all__ = [
    "setup_mlflow_tracking",
    "get_mlflow_client",
    "start_mlflow_run_context",
    "log_parameters",
    "log_metrics_dict",
    "log_timeseries_metrics",
    "timeseries_frame",
    "log_timeseries_table",
]
