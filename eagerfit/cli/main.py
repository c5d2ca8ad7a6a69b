# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI entrypoint for eagerfit.

One root command, every operation a subcommand. Global options (--config,
--log-level, --dry-run, --seed) are shared by every subcommand through an
argparse parent parser.

Usage:
    eagerfit train --config configs/mtcars.yaml
    eagerfit resume --config configs/mtcars.yaml --run-id 20261018_101500_42
    eagerfit evaluate --config configs/mtcars.yaml
    eagerfit predict --config configs/mtcars.yaml --input cars.csv --output preds.csv
    eagerfit info
"""

import argparse
import sys

from eagerfit.cli.commands import (
    handle_evaluate,
    handle_info,
    handle_predict,
    handle_resume,
    handle_train,
)
from eagerfit.cli.exit_codes import USER_ERROR


def _build_global_parser() -> argparse.ArgumentParser:
    """
    Build the parent parser with global options.

    add_help=False keeps its -h from colliding with the subcommand parsers.
    """
    parent = argparse.ArgumentParser(add_help=False)
    parent.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file. Relative paths inside it resolve against its directory.",
    )
    parent.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging verbosity level.",
    )
    parent.add_argument(
        "--dry-run",
        action="store_true",
        default=False,
        dest="dry_run",
        help="Validate inputs and report what would run, without training or writing files.",
    )
    parent.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Override the random seed (takes precedence over config).",
    )
    return parent


def _add_checkpoint_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        dest="run_id",
        help="Experiment to use; defaults to the most recent one.",
    )
    parser.add_argument(
        "--checkpoint",
        type=str,
        default=None,
        help="Explicit checkpoint directory; overrides --run-id.",
    )


def _register_subcommands(
    subparsers: argparse._SubParsersAction,  # type: ignore[type-arg]
    parent: argparse.ArgumentParser,
) -> None:
    """
    Register every subcommand and its handler.

    Each handler is stored via set_defaults(func=...), so `eagerfit train`
    ends up calling handle_train(args).
    """
    commands = [
        ("train", "Train a model in a new experiment.", handle_train),
        ("resume", "Resume training from the latest checkpoint.", handle_resume),
        ("evaluate", "Report test-set loss of a checkpoint.", handle_evaluate),
        ("predict", "Predict targets for rows of a CSV file.", handle_predict),
        ("info", "Display environment information.", handle_info),
    ]

    for name, help_text, handler in commands:
        parser = subparsers.add_parser(name, parents=[parent], help=help_text)
        parser.set_defaults(func=handler, run_id=None, checkpoint=None)

    resume_parser = subparsers.choices["resume"]
    resume_parser.add_argument(
        "--run-id",
        type=str,
        default=None,
        dest="run_id",
        help="Experiment to resume; defaults to the most recent one.",
    )

    _add_checkpoint_arguments(subparsers.choices["evaluate"])

    predict_parser = subparsers.choices["predict"]
    _add_checkpoint_arguments(predict_parser)
    predict_parser.add_argument(
        "--input",
        type=str,
        required=True,
        dest="input_path",
        help="CSV file with the feature columns used in training.",
    )
    predict_parser.add_argument(
        "--output",
        type=str,
        required=True,
        dest="output_path",
        help="Where to write the input rows plus a prediction column.",
    )


def build_parser() -> argparse.ArgumentParser:
    parent = _build_global_parser()

    root_parser = argparse.ArgumentParser(
        prog="eagerfit",
        description="eagerfit: explicit eager-execution training on PyTorch.",
        parents=[parent],
    )
    subparsers = root_parser.add_subparsers(dest="command")
    _register_subcommands(subparsers, parent)
    return root_parser


def main() -> None:
    """
    Main CLI entrypoint, referenced by [project.scripts].

    Parses the command line, dispatches to the subcommand handler and exits
    with its return code. Without a subcommand, prints help and exits with
    USER_ERROR.
    """
    root_parser = build_parser()
    args = root_parser.parse_args()

    if getattr(args, "func", None) is None:
        root_parser.print_help()
        sys.exit(USER_ERROR)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
