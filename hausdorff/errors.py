#!/usr/bin/env python3
"""
Exceptions raised by the Hausdorff loss paths
"""


class HausdorffLossError(Exception):
    """Base class for all Hausdorff loss failures"""


class ShapeMismatchError(HausdorffLossError, ValueError):
    """Input buffers do not share one element count"""

    def __init__(self, shapes):
        self.shapes = tuple(shapes)
        sizes = ", ".join(f"{shape}" for shape in self.shapes)
        super().__init__(f"Buffers must have equal element counts, got shapes: {sizes}")


class InvalidInputError(HausdorffLossError, ValueError):
    """Empty buffers, unsupported dtypes, bad launch limits or non-finite values"""


class DeviceUnavailableError(HausdorffLossError, RuntimeError):
    """No usable CUDA device - use reference_loss instead"""


class DeviceError(HausdorffLossError, RuntimeError):
    """Kernel launch, transfer or synchronization failed"""
