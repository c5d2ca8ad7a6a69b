# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Model factory for eagerfit.

The network is composed entirely from pre-built torch layers:

    Linear(in, h1) -> act [-> Dropout] -> ... -> Linear(h_last, out)

With an empty `hidden_units` list the model is plain linear regression.
"""

import logging

import torch.nn as nn

from eagerfit.config.schema import ModelConfig
from eagerfit.logging.logger import get_logger

logger: logging.Logger = get_logger(__name__)

_ACTIVATIONS: dict[str, type[nn.Module]] = {
    "relu": nn.ReLU,
    "tanh": nn.Tanh,
    "sigmoid": nn.Sigmoid,
    "gelu": nn.GELU,
}


def get_activation(name: str) -> nn.Module:
    """Instantiate an activation layer by name."""
    try:
        return _ACTIVATIONS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown activation '{name}'. Available: {', '.join(sorted(_ACTIVATIONS))}"
        ) from None


def build_model(
    model_config: ModelConfig,
    input_units: int,
    output_units: int = 1,
) -> nn.Sequential:
    """
    Build the feed-forward network described by the config.

    Args:
        model_config: Validated model section.
        input_units: Number of input features.
        output_units: Number of target columns the model predicts.

    Returns:
        An nn.Sequential mapping (batch, input_units) to (batch, output_units).
    """
    if input_units < 1 or output_units < 1:
        raise ValueError(
            f"input_units and output_units must be >= 1, got {input_units} and {output_units}"
        )

    layers: list[nn.Module] = []
    in_features = input_units
    for units in model_config.hidden_units:
        layers.append(nn.Linear(in_features, units, bias=model_config.use_bias))
        layers.append(get_activation(model_config.activation))
        if model_config.dropout > 0:
            layers.append(nn.Dropout(model_config.dropout))
        in_features = units
    layers.append(nn.Linear(in_features, output_units, bias=model_config.use_bias))

    model = nn.Sequential(*layers)

    logger.debug(
        "Model built",
        extra={
            "input_units": input_units,
            "hidden_units": list(model_config.hidden_units),
            "output_units": output_units,
            "parameters": count_parameters(model),
        },
    )
    return model


def count_parameters(model: nn.Module, trainable_only: bool = True) -> int:
    """Total number of (trainable) scalar parameters."""
    return sum(
        p.numel() for p in model.parameters() if p.requires_grad or not trainable_only
    )
