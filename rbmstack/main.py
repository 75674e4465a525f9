"""RBM stack pretraining CLI."""
import argparse
import logging
import os
import sys

import mlflow
import torch

from rbmstack.constants import LOG_DATE_FORMAT, LOG_FORMAT, SEED
from rbmstack.settings import load_config
from rbmstack.src.data_loader import load_dataset, make_synthetic_dataset
from rbmstack.src.exceptions import RbmStackError
from rbmstack.src.model import RbmType
from rbmstack.src.random_pool import acquire
from rbmstack.src.stack import train_stack
from rbmstack.src.utils import (
    get_device, log_progress, plot_error_trajectories, prompt_output_dim, set_seed
)

logger = logging.getLogger(__name__)

MLFLOW_EXPERIMENT_NAME = "rbm-stack-pretraining"
_mlflow_db = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "mlflow.db"))
MLFLOW_TRACKING_URI = f"sqlite:///{_mlflow_db}"


def build_parser():
    parser = argparse.ArgumentParser(description="Greedy layer-wise RBM stack pretraining")
    parser.add_argument('--config', type=str, default=None, help='YAML configuration file')
    parser.add_argument('--data', type=str, default=None, help='Dataset (.csv, .npy or .pt)')
    parser.add_argument('--synthetic', action='store_true', help='Train on random binary data')
    parser.add_argument('--hidden-dims', type=int, nargs='*', default=None)
    parser.add_argument('--output-dim', type=int, default=None,
                        help='Size of the last layer; prompted for when omitted')
    parser.add_argument('--slope-threshold', type=float, default=None)
    parser.add_argument('--learning-rate', type=float, default=None)
    parser.add_argument('--first-layer-type', type=str, default=None,
                        choices=[t.value for t in RbmType])
    parser.add_argument('--seed', type=int, default=SEED)
    parser.add_argument('--pool-size', type=int, default=None)
    parser.add_argument('--device', type=str, default=None)
    parser.add_argument('--output', type=str, default=None, help='Where to torch.save the weights')
    parser.add_argument('--no-mlflow', action='store_true')
    parser.add_argument('--log-level', type=str, default="INFO")
    return parser


def pretrain_workflow(dataset, layer_dims, model_cfg, device, seed, plot_path=None, use_mlflow=True):
    """Train the stack, plot its error trajectories and return the weights."""
    histories = {}
    kwargs = dict(
        batch_size=model_cfg.batch_size,
        device=device,
        progress=log_progress,
        histories=histories,
    )

    if not use_mlflow:
        weights = train_stack(dataset, layer_dims, model_cfg.slope_threshold,
                              model_cfg.first_layer_type, model_cfg.learning_rate, **kwargs)
        plot_path = plot_error_trajectories(histories, plot_path)
        logger.info(f"Saved error plot to {plot_path}")
        return weights

    mlflow.set_tracking_uri(os.environ.get("MLFLOW_TRACKING_URI", MLFLOW_TRACKING_URI))
    mlflow.set_experiment(MLFLOW_EXPERIMENT_NAME)
    run_name = "stack_" + "-".join(str(d) for d in layer_dims)
    with mlflow.start_run(run_name=run_name):
        logger.info(f"MLflow experiment: {MLFLOW_EXPERIMENT_NAME}, run: {run_name}")
        mlflow.log_params({
            "layer_dims": str(list(layer_dims)),
            "slope_threshold": model_cfg.slope_threshold,
            "learning_rate": model_cfg.learning_rate,
            "first_layer_type": model_cfg.first_layer_type.value,
            "batch_size": model_cfg.batch_size,
            "pool_size": model_cfg.pool_size,
            "seed": seed,
            "n_samples": dataset.n_samples,
            "device": str(device),
        })
        weights = train_stack(dataset, layer_dims, model_cfg.slope_threshold,
                              model_cfg.first_layer_type, model_cfg.learning_rate,
                              use_mlflow=True, **kwargs)
        mlflow.log_metrics({f"layer{layer}_epochs": len(errors) for layer, errors in histories.items()})

        plot_path = plot_error_trajectories(histories, plot_path)
        logger.info(f"Saved error plot to {plot_path}")
        if os.path.exists(plot_path):
            mlflow.log_artifact(plot_path, artifact_path="plots")
    return weights


def main(argv=None):
    """Main entry point for stack pretraining."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    set_seed(args.seed)
    device = get_device(args.device)

    try:
        config = load_config(args.config)
        model_cfg = config.model
        if args.hidden_dims is not None:
            model_cfg.hidden_dims = args.hidden_dims
        if args.slope_threshold is not None:
            model_cfg.slope_threshold = args.slope_threshold
        if args.learning_rate is not None:
            model_cfg.learning_rate = args.learning_rate
        if args.first_layer_type is not None:
            model_cfg.first_layer_type = RbmType.parse(args.first_layer_type)
        if args.pool_size is not None:
            model_cfg.pool_size = args.pool_size

        data_path = args.data or config.data.path
        if data_path and not args.synthetic:
            dataset = load_dataset(data_path)
        else:
            dataset = make_synthetic_dataset(config.data.synthetic_samples,
                                             config.data.synthetic_features, seed=args.seed)
            logger.info(f"Using synthetic data: {dataset.n_samples} x {dataset.n_features}")

        output_dim = args.output_dim or model_cfg.output_dim or prompt_output_dim()
        layer_dims = [dataset.n_features, *model_cfg.hidden_dims, output_dim]
        logger.info(f"Training RBM stack {layer_dims} on {device}")

        acquire(seed=args.seed, pool_size=model_cfg.pool_size, device=device)
        weights = pretrain_workflow(dataset, layer_dims, model_cfg, device, args.seed,
                                    plot_path=config.paths.plot_path,
                                    use_mlflow=not args.no_mlflow)
    except (RbmStackError, FileNotFoundError) as e:
        logger.error(f"Pretraining failed: {e}")
        return 1

    weights_path = args.output or config.paths.weights_path
    os.makedirs(os.path.dirname(weights_path) or ".", exist_ok=True)
    torch.save(weights, weights_path)
    logger.info(f"Saved {len(weights)} weight matrices to {weights_path}")

    logger.info("=" * 60)
    logger.info("Pretraining complete." + ("" if args.no_mlflow else
                " View results with: mlflow ui --backend-store-uri " + mlflow.get_tracking_uri()))
    logger.info("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
