# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
eagerfit training package.

Subsystems:
  - losses: regression loss functions
  - tape: gradient tape over torch autograd
  - optimizer: optimizer factory and gradient application
  - checkpoint: numbered, atomic checkpoints with an index
  - metrics: per-epoch metrics and history
  - engine: training loop, evaluation, prediction, experiment dirs
"""
