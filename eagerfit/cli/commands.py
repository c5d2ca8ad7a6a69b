# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Subcommand handlers for the eagerfit CLI.

Every handler takes the parsed argparse namespace and returns an exit code.
Library code raises; handlers are the boundary where exceptions are logged
and mapped to exit codes. No print() calls: everything goes through the
structured logger.
"""

import argparse
import logging
from pathlib import Path
from typing import Optional

from eagerfit.cli.exit_codes import CONFIG_ERROR, RUNTIME_ERROR, SUCCESS, USER_ERROR, VALIDATION_ERROR
from eagerfit.config.exceptions import ConfigError
from eagerfit.config.loader import load_config
from eagerfit.config.schema import EagerFitConfig
from eagerfit.logging.logger import get_logger
from eagerfit.runtime.bootstrap import bootstrap, set_deterministic_seed


def _resolve_project_root(args: argparse.Namespace) -> Path:
    """Relative paths resolve against the config file's directory, else the CWD."""
    if args.config is not None:
        return Path(args.config).resolve().parent
    return Path.cwd()


def _load_and_bootstrap(
    args: argparse.Namespace,
    command_name: str,
) -> tuple[int, Optional[EagerFitConfig], logging.Logger]:
    """
    Shared setup: load the config, apply the --seed override, bootstrap.

    Returns (exit_code, config, logger). A non-SUCCESS exit code means the
    caller should return it immediately.
    """
    logger = get_logger(f"eagerfit.cli.{command_name}", log_level=args.log_level)

    config = None
    if args.config is not None:
        try:
            config = load_config(Path(args.config))
        except ConfigError as err:
            logger.error(
                "Configuration error",
                extra={"command": command_name, "error": str(err)},
            )
            return CONFIG_ERROR, None, logger

    if config is not None and args.seed is not None:
        global_config = config.global_config.model_copy(update={"seed": args.seed})
        config = config.model_copy(update={"global_config": global_config})

    if config is not None:
        bootstrap(config.global_config, _resolve_project_root(args))
    else:
        logger.debug(
            "No config provided, running with defaults",
            extra={"command": command_name},
        )
        if args.seed is not None:
            set_deterministic_seed(args.seed)

    return SUCCESS, config, logger


def _experiments_root(config: EagerFitConfig, args: argparse.Namespace) -> Path:
    from eagerfit.utils.paths import resolve_within_project

    return resolve_within_project(
        config.global_config.directories.experiments, _resolve_project_root(args)
    )


def _resolve_checkpoint(
    args: argparse.Namespace,
    config: Optional[EagerFitConfig],
    logger: logging.Logger,
) -> Optional[Path]:
    """
    Pick the checkpoint a command works on.

    --checkpoint wins; otherwise the latest checkpoint of --run-id or of the
    most recent experiment. Logs the reason and returns None when nothing
    is found.
    """
    from eagerfit.training.checkpoint.core import latest_checkpoint
    from eagerfit.training.engine.experiment import find_experiment_dir

    if args.checkpoint is not None:
        checkpoint_dir = Path(args.checkpoint)
        if not checkpoint_dir.is_dir():
            logger.error("Checkpoint not found", extra={"checkpoint": str(checkpoint_dir)})
            return None
        return checkpoint_dir

    if config is None:
        logger.error("Either --checkpoint or --config is required to locate a checkpoint")
        return None

    experiments_root = _experiments_root(config, args)
    experiment_dir = find_experiment_dir(experiments_root, args.run_id)
    if experiment_dir is None:
        logger.error(
            "No experiment found",
            extra={"experiments_root": str(experiments_root), "run_id": args.run_id},
        )
        return None

    checkpoint_dir = latest_checkpoint(experiment_dir / "checkpoints")
    if checkpoint_dir is None:
        logger.error(
            "No checkpoint found in experiment",
            extra={"experiment_dir": str(experiment_dir)},
        )
    return checkpoint_dir


def handle_train(args: argparse.Namespace) -> int:
    """Train a model in a new experiment directory."""
    exit_code, config, logger = _load_and_bootstrap(args, "train")
    if exit_code != SUCCESS:
        return exit_code

    try:
        if config is None or config.data is None or config.model is None or config.train is None:
            logger.error(
                "Data, model and train config sections are required",
                extra={"command": "train"},
            )
            return CONFIG_ERROR

        logger.info(
            "Starting training",
            extra={"command": "train", "dry_run": args.dry_run},
        )

        if args.dry_run:
            logger.info(
                "Dry run: would start training",
                extra={
                    "source": config.data.source,
                    "epochs": config.train.epochs,
                    "batch_size": config.train.batch_size,
                    "optimizer": config.train.optimizer,
                },
            )
            return SUCCESS

        from eagerfit.training.engine.core import run_training
        from eagerfit.training.engine.experiment import create_experiment_dir

        experiment_dir = create_experiment_dir(
            _experiments_root(config, args), config, config.global_config.seed,
        )

        result = run_training(config, experiment_dir, project_root=_resolve_project_root(args))

        logger.info(
            "Training complete",
            extra={
                "epochs_completed": result.epochs_completed,
                "global_step": result.global_step,
                "final_loss": result.final_loss,
                "test_loss": result.test_loss,
                "experiment_dir": result.experiment_dir,
                "checkpoint": result.checkpoint_path,
            },
        )
        return SUCCESS

    except Exception as err:
        logger.error("Training failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_resume(args: argparse.Namespace) -> int:
    """Continue training from the latest checkpoint of an experiment."""
    exit_code, config, logger = _load_and_bootstrap(args, "resume")
    if exit_code != SUCCESS:
        return exit_code

    try:
        if config is None or config.data is None or config.model is None or config.train is None:
            logger.error(
                "Data, model and train config sections are required",
                extra={"command": "resume"},
            )
            return CONFIG_ERROR

        from eagerfit.training.checkpoint.core import latest_checkpoint
        from eagerfit.training.engine.core import run_training
        from eagerfit.training.engine.experiment import find_experiment_dir

        experiments_root = _experiments_root(config, args)
        experiment_dir = find_experiment_dir(experiments_root, args.run_id)
        if experiment_dir is None:
            logger.error(
                "No experiment found to resume",
                extra={"experiments_root": str(experiments_root), "run_id": args.run_id},
            )
            return VALIDATION_ERROR

        checkpoint_dir = latest_checkpoint(experiment_dir / "checkpoints")
        if checkpoint_dir is None:
            logger.error(
                "No checkpoint found in experiment",
                extra={"experiment_dir": str(experiment_dir)},
            )
            return VALIDATION_ERROR

        logger.info(
            "Found checkpoint",
            extra={"checkpoint": str(checkpoint_dir), "dry_run": args.dry_run},
        )

        if args.seed is not None:
            logger.warning(
                "--seed is ignored on resume, the run continues with its checkpoint's seed",
                extra={"seed": args.seed},
            )

        if args.dry_run:
            logger.info("Dry run: would resume training")
            return SUCCESS

        result = run_training(
            config,
            experiment_dir,
            project_root=_resolve_project_root(args),
            resume_from=checkpoint_dir,
        )

        logger.info(
            "Resumed training complete",
            extra={
                "epochs_completed": result.epochs_completed,
                "global_step": result.global_step,
                "final_loss": result.final_loss,
                "test_loss": result.test_loss,
            },
        )
        return SUCCESS

    except Exception as err:
        logger.error("Resume failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_evaluate(args: argparse.Namespace) -> int:
    """Restore a checkpoint and report its loss on the held-out test split."""
    exit_code, config, logger = _load_and_bootstrap(args, "evaluate")
    if exit_code != SUCCESS:
        return exit_code

    try:
        if config is None or config.data is None or config.train is None:
            logger.error(
                "Data and train config sections are required",
                extra={"command": "evaluate"},
            )
            return CONFIG_ERROR

        checkpoint_dir = _resolve_checkpoint(args, config, logger)
        if checkpoint_dir is None:
            return VALIDATION_ERROR

        if args.dry_run:
            logger.info("Dry run: would evaluate", extra={"checkpoint": str(checkpoint_dir)})
            return SUCCESS

        from eagerfit.data.loader import load_tabular_data
        from eagerfit.training.engine.core import evaluate, make_eval_dataset, restore_model
        from eagerfit.training.losses import get_loss_fn

        model, metadata = restore_model(checkpoint_dir, config.model)
        # The checkpoint's seed reproduces the split the model was trained on.
        data = load_tabular_data(config.data, metadata.seed, _resolve_project_root(args))
        test_loss = evaluate(
            model,
            make_eval_dataset(data, config.train.batch_size),
            get_loss_fn(config.train.loss),
        )

        if test_loss is None:
            logger.warning(
                "Test split is empty, nothing to evaluate",
                extra={"test_fraction": config.data.test_fraction},
            )
            return SUCCESS

        logger.info(
            "Evaluation complete",
            extra={
                "checkpoint": str(checkpoint_dir),
                "loss_fn": config.train.loss,
                "test_loss": test_loss,
                "test_rows": int(data.test_features.shape[0]),
            },
        )
        return SUCCESS

    except Exception as err:
        logger.error("Evaluation failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_predict(args: argparse.Namespace) -> int:
    """Write predictions for every row of an input CSV."""
    exit_code, config, logger = _load_and_bootstrap(args, "predict")
    if exit_code != SUCCESS:
        return exit_code

    input_path = Path(args.input_path)
    if not input_path.is_file():
        logger.error("Input file not found", extra={"input": str(input_path)})
        return USER_ERROR

    try:
        checkpoint_dir = _resolve_checkpoint(args, config, logger)
        if checkpoint_dir is None:
            return VALIDATION_ERROR

        if args.dry_run:
            logger.info(
                "Dry run: would predict",
                extra={"checkpoint": str(checkpoint_dir), "input": str(input_path)},
            )
            return SUCCESS

        from eagerfit.data.loader import apply_preprocessing, read_table
        from eagerfit.training.engine.core import predict, restore_model

        model, metadata = restore_model(
            checkpoint_dir, config.model if config is not None else None
        )
        frame = read_table(str(input_path))
        predictions = predict(model, apply_preprocessing(frame, metadata.preprocessing))

        output = frame.copy()
        output["prediction"] = predictions[:, 0].numpy()

        output_path = Path(args.output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output.to_csv(output_path, index=False)

        logger.info(
            "Predictions written",
            extra={
                "checkpoint": str(checkpoint_dir),
                "rows": len(output),
                "output": str(output_path),
            },
        )
        return SUCCESS

    except Exception as err:
        logger.error("Prediction failed", extra={"error": str(err)}, exc_info=True)
        return RUNTIME_ERROR


def handle_info(args: argparse.Namespace) -> int:
    """Display environment and configuration information."""
    logger = get_logger("eagerfit.cli.info", log_level=args.log_level)

    from eagerfit import __version__
    from eagerfit.runtime.bootstrap import describe_runtime

    logger.info(
        "System information",
        extra={"eagerfit_version": __version__, "config": args.config, **describe_runtime()},
    )
    return SUCCESS
