# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
eagerfit: an explicit eager-execution training workflow on PyTorch.

Model construction, loss, dataset iteration, a gradient-tape training loop
and checkpointing, each as a small module with no hidden framework magic.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("eagerfit")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"
