# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Example data for eagerfit.

Subsystems:
  - loader: CSV table to train/test feature and target tensors
  - dataset: tensor-slice dataset with shuffling and batching
  - resources: bundled tables (mtcars)
"""
