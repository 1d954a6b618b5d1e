#!/usr/bin/env python3
"""
CUDA kernels for the DTM-weighted Hausdorff loss
One thread per element, a block tree reduction in dynamic shared memory,
then one atomic add per block into a single global accumulator
"""

import math
from collections import namedtuple

import numpy as np
from numba import cuda
import numba

from ..buffers import as_device_buffers, is_device_array, check_finite as check_all_finite
from ..errors import DeviceError, DeviceUnavailableError, InvalidInputError

# Thread Block Limits
DEFAULT_MAX_THREADS = 256
MAX_THREADS_LIMIT = 1024

# Shared array size 0 means the size comes from the launch configuration
DYNAMIC_SHARED = 0
DEFAULT_STREAM = 0

LaunchPlan = namedtuple("LaunchPlan", ["threads_per_block", "block_count", "shared_bytes"])


@cuda.jit(device=True)
def hausdorff_term(diff, pred_dist, truth_dist):
    return diff * diff * (pred_dist * pred_dist + truth_dist * truth_dist)


@cuda.jit(device=True)
def block_tree_reduce(cache, tid, width):
    """
    Fold cache[0:width] into cache[0]

    The half is rounded up so odd widths keep their last slot (5 -> 3 -> 2 -> 1).
    Every thread in the block has to call this since it contains barriers.
    """
    while width > 1:
        half = (width - 1) // 2 + 1
        if tid + half < width:
            cache[tid] += cache[tid + half]
        cuda.syncthreads()
        width = half


@cuda.jit
def hausdorff_loss_kernel_f32(pred, truth, pred_dtm, truth_dtm, n, total):
    """
    Accumulate sum((pred - truth)^2 * (pred_dtm^2 + truth_dtm^2)) into total[0]

    Args:
        pred, truth, pred_dtm, truth_dtm: flat arrays of length n
        n: element count
        total: (1,) float32 accumulator, zeroed before launch
    """
    cache = cuda.shared.array(DYNAMIC_SHARED, dtype=numba.float32)
    tid = cuda.threadIdx.x
    i = tid + cuda.blockIdx.x * cuda.blockDim.x

    # Out of range threads still write a zero - the tree reads every slot
    term = numba.float32(0.0)
    if i < n:
        diff = numba.float32(pred[i]) - numba.float32(truth[i])
        term = hausdorff_term(diff, numba.float32(pred_dtm[i]), numba.float32(truth_dtm[i]))
    cache[tid] = term

    cuda.syncthreads()

    block_tree_reduce(cache, tid, cuda.blockDim.x)

    if tid == 0:
        cuda.atomic.add(total, 0, cache[0])


@cuda.jit
def hausdorff_loss_kernel_f64(pred, truth, pred_dtm, truth_dtm, n, total):
    """Same as hausdorff_loss_kernel_f32 with a float64 cache and accumulator"""
    cache = cuda.shared.array(DYNAMIC_SHARED, dtype=numba.float64)
    tid = cuda.threadIdx.x
    i = tid + cuda.blockIdx.x * cuda.blockDim.x

    term = numba.float64(0.0)
    if i < n:
        diff = numba.float64(pred[i]) - numba.float64(truth[i])
        term = hausdorff_term(diff, numba.float64(pred_dtm[i]), numba.float64(truth_dtm[i]))
    cache[tid] = term

    cuda.syncthreads()

    block_tree_reduce(cache, tid, cuda.blockDim.x)

    if tid == 0:
        cuda.atomic.add(total, 0, cache[0])


HAUSDORFF_KERNELS = {
    np.dtype(np.float32): hausdorff_loss_kernel_f32,
    np.dtype(np.float64): hausdorff_loss_kernel_f64,
}


def plan_launch(n, dtype, max_threads=DEFAULT_MAX_THREADS):
    """
    Size the launch for n elements: one thread per element, at most max_threads per block

    Returns:
        LaunchPlan(threads_per_block, block_count, shared_bytes)
    """
    if n < 1:
        raise InvalidInputError("Cannot launch a reduction over zero elements")
    if not 1 <= max_threads <= MAX_THREADS_LIMIT:
        raise InvalidInputError(f"max_threads must be in [1, {MAX_THREADS_LIMIT}], got {max_threads}")

    threads_per_block = min(n, max_threads)
    block_count = math.ceil(n / threads_per_block)
    shared_bytes = threads_per_block * np.dtype(dtype).itemsize
    return LaunchPlan(threads_per_block, block_count, shared_bytes)


def ensure_device():
    if not cuda.is_available():
        raise DeviceUnavailableError("No CUDA device available - use reference_loss instead")


def _reduce(pred, truth, pred_dtm, truth_dtm, max_threads, check_finite):
    """Validate, plan and launch; returns (device sum, n, working dtype)"""
    if max_threads is None:
        max_threads = DEFAULT_MAX_THREADS

    buffers, n, dtype = as_device_buffers(pred, truth, pred_dtm, truth_dtm)
    plan = plan_launch(n, dtype, max_threads)
    if check_finite:
        check_all_finite(*buffers)

    ensure_device()
    kernel = HAUSDORFF_KERNELS[dtype]

    try:
        device_buffers = [buf if is_device_array(buf) else cuda.to_device(buf) for buf in buffers]
        total = cuda.to_device(np.zeros(1, dtype=dtype))

        kernel[plan.block_count, plan.threads_per_block, DEFAULT_STREAM, plan.shared_bytes](
            *device_buffers, n, total
        )
        cuda.synchronize()

        result = total.copy_to_host()[0]
    except Exception as e:
        raise DeviceError(f"Hausdorff reduction failed for {plan}: {e}") from e

    return result, n, dtype


def launch_hausdorff_sum(pred, truth, pred_dtm, truth_dtm, max_threads=None, check_finite=False):
    """Un-normalized sum of the loss terms, reduced on the GPU"""
    total, _, _ = _reduce(pred, truth, pred_dtm, truth_dtm, max_threads, check_finite)
    return total


def reduction_loss(pred, truth, pred_dtm, truth_dtm, max_threads=None, check_finite=False):
    """
    GPU Hausdorff loss: mean((pred - truth)^2 * (pred_dtm^2 + truth_dtm^2))

    Inputs may be host arrays or device arrays of any shape with equal element
    counts. The result is reproducible only up to floating point summation order.

    Raises:
        ShapeMismatchError: element counts differ (before any device work)
        InvalidInputError: empty buffers, unsupported dtype, bad max_threads, non-finite values
        DeviceUnavailableError: no CUDA device - fall back to reference_loss
        DeviceError: launch or synchronization failed
    """
    total, n, dtype = _reduce(pred, truth, pred_dtm, truth_dtm, max_threads, check_finite)
    return total / dtype.type(n)
