"""MLflow tracing setup for generative model calls."""

import logging

import mlflow

from speaktoslides.config.settings import TracingSettings

logger = logging.getLogger(__name__)


def configure_tracing(settings: TracingSettings) -> None:
    """Point MLflow at the tracking server, or switch tracing off.

    Failures are logged and tracing is disabled; the app keeps running
    without traces.
    """
    if not settings.enabled:
        mlflow.tracing.disable()
        logger.info("MLflow tracing disabled")
        return

    try:
        mlflow.set_tracking_uri(settings.tracking_uri)
        experiment = mlflow.get_experiment_by_name(settings.experiment_name)
        if experiment is None:
            experiment_id = mlflow.create_experiment(settings.experiment_name)
            logger.info(
                "Created new MLflow experiment",
                extra={"experiment_name": settings.experiment_name, "experiment_id": experiment_id},
            )
        else:
            experiment_id = experiment.experiment_id
        mlflow.set_experiment(experiment_id=experiment_id)
        mlflow.tracing.enable()

        logger.info(
            "MLflow configured",
            extra={
                "tracking_uri": settings.tracking_uri,
                "experiment_name": settings.experiment_name,
                "experiment_id": experiment_id,
            },
        )
    except Exception as e:
        logger.warning(f"Failed to configure MLflow, tracing disabled: {e}")
        mlflow.tracing.disable()
