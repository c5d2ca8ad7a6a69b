# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
eagerfit model package.

Feed-forward regression networks composed from pre-built torch layers
(Linear, activation, Dropout) in an nn.Sequential.
"""
