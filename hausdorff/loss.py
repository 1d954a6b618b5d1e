#!/usr/bin/env python3
"""
Hausdorff loss entry points
GPU reduction when a device is present and the input is large enough, numpy otherwise
"""

import numpy as np
from numba import cuda

from .buffers import is_device_array
from .errors import DeviceUnavailableError
from .reference import reference_loss, reference_sum, sequential_sum
from .kernels.hausdorff_kernels import (
    DEFAULT_MAX_THREADS,
    MAX_THREADS_LIMIT,
    launch_hausdorff_sum,
    plan_launch,
    reduction_loss,
)

__all__ = [
    "DEFAULT_MAX_THREADS",
    "MAX_THREADS_LIMIT",
    "MIN_GPU_ELEMENTS",
    "hausdorff_loss",
    "launch_hausdorff_sum",
    "plan_launch",
    "reduction_loss",
    "reference_loss",
    "reference_sum",
    "sequential_sum",
]

# Below this many elements the launch overhead outweighs the reduction
MIN_GPU_ELEMENTS = 4096

_fallback_reported = False


def element_count(array):
    if getattr(array, "__cuda_ndarray__", False):
        return array.size
    if is_device_array(array):
        return cuda.as_cuda_array(array).size
    return np.size(array)


def hausdorff_loss(pred, truth, pred_dtm, truth_dtm, max_threads=None,
                   min_gpu_elements=MIN_GPU_ELEMENTS, check_finite=False):
    """
    Hausdorff loss on whichever path fits

    Small inputs go straight to reference_loss. Larger ones use reduction_loss and
    fall back to reference_loss when no CUDA device is available. Launch failures
    (DeviceError) are not retried.
    """
    global _fallback_reported

    if element_count(pred) < min_gpu_elements:
        return reference_loss(pred, truth, pred_dtm, truth_dtm, check_finite=check_finite)

    try:
        return reduction_loss(pred, truth, pred_dtm, truth_dtm,
                              max_threads=max_threads, check_finite=check_finite)
    except DeviceUnavailableError as e:
        if not _fallback_reported:
            print(f"⚠️  {e}. Falling back to the numpy reference loss.")
            _fallback_reported = True
        return reference_loss(pred, truth, pred_dtm, truth_dtm, check_finite=check_finite)
