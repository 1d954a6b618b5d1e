#!/usr/bin/env python3
"""
Buffer validation and working type promotion
Shared by the reference and CUDA paths so both reject the same inputs
"""

import numpy as np
from numba import cuda

from .errors import ShapeMismatchError, InvalidInputError

# Working types the kernels are compiled for
SUPPORTED_WORKING_TYPES = (np.dtype(np.float32), np.dtype(np.float64))
MIN_WORKING_TYPE = np.float32


def working_dtype(*dtypes):
    """
    Promote the buffer dtypes to the floating type the loss is computed in

    bool/int predictions with float64 maps -> float64, bool with float32 -> float32,
    float16 -> float32. Anything that does not land on float32/float64 is rejected.
    """
    try:
        promoted = np.promote_types(np.result_type(*dtypes), MIN_WORKING_TYPE)
    except TypeError as e:
        raise InvalidInputError(f"Cannot promote dtypes {dtypes}: {e}") from e

    if promoted not in SUPPORTED_WORKING_TYPES:
        raise InvalidInputError(f"Unsupported working type {promoted}; expected float32 or float64")
    return promoted


def is_device_array(array):
    """True for numba device arrays and any __cuda_array_interface__ object"""
    return bool(getattr(array, "__cuda_ndarray__", False)) or hasattr(array, "__cuda_array_interface__")


def check_lengths(*buffers):
    """Raise ShapeMismatchError unless every buffer has the same element count, returns N"""
    sizes = {int(np.prod(buf.shape)) for buf in buffers}
    if len(sizes) != 1:
        raise ShapeMismatchError(buf.shape for buf in buffers)

    n = sizes.pop()
    if n == 0:
        raise InvalidInputError("Buffers are empty; the loss needs at least one element")
    return n


def check_finite(*buffers):
    """Raise InvalidInputError if any buffer holds NaN or inf"""
    for position, buf in enumerate(buffers):
        if not np.all(np.isfinite(_to_host(buf))):
            raise InvalidInputError(f"Buffer {position} contains non-finite values")


def _to_host(array):
    if getattr(array, "__cuda_ndarray__", False):
        return array.copy_to_host()
    if is_device_array(array):
        return cuda.as_cuda_array(array).copy_to_host()
    return np.asarray(array)


def as_host_buffers(pred, truth, pred_dtm, truth_dtm):
    """
    Convert four array-likes to flat host arrays of a common working type

    Returns:
        (buffers, n, dtype)
    """
    arrays = [_to_host(a) for a in (pred, truth, pred_dtm, truth_dtm)]
    n = check_lengths(*arrays)
    dtype = working_dtype(*(a.dtype for a in arrays))

    buffers = [np.ascontiguousarray(a, dtype=dtype).ravel() for a in arrays]
    return buffers, n, dtype


def as_device_buffers(pred, truth, pred_dtm, truth_dtm):
    """
    Flatten four buffers for the kernel without allocating anything on the GPU

    Device arrays are used in place with their own dtypes (the kernel casts
    each element); host arrays are cast to the working type and left for the
    launcher to transfer.

    Returns:
        (buffers, n, dtype)
    """
    arrays = []
    for a in (pred, truth, pred_dtm, truth_dtm):
        if getattr(a, "__cuda_ndarray__", False):
            arrays.append(a)
        elif is_device_array(a):
            arrays.append(cuda.as_cuda_array(a))
        else:
            arrays.append(np.asarray(a))

    n = check_lengths(*arrays)
    dtype = working_dtype(*(a.dtype for a in arrays))

    buffers = []
    for position, a in enumerate(arrays):
        if is_device_array(a):
            # Device arrays only flatten in place when C-contiguous
            if not a.is_c_contiguous():
                raise InvalidInputError(
                    f"Device buffer {position} with shape {a.shape} is not C-contiguous; "
                    f"pass a C-ordered copy or use reference_loss"
                )
            buffers.append(a.ravel())
        else:
            buffers.append(np.ascontiguousarray(a, dtype=dtype).ravel())
    return buffers, n, dtype
