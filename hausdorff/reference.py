#!/usr/bin/env python3
"""
Host reference for the DTM-weighted Hausdorff loss
Plain numpy, used to cross-check the CUDA reduction and as its fallback
"""

import math
import numpy as np

from .buffers import as_host_buffers, check_finite as check_all_finite


def hausdorff_terms(pred, truth, pred_dtm, truth_dtm):
    """Per-element terms (pred - truth)^2 * (pred_dtm^2 + truth_dtm^2) on flat host buffers"""
    diff = pred - truth
    return diff * diff * (pred_dtm * pred_dtm + truth_dtm * truth_dtm)


def reference_sum(pred, truth, pred_dtm, truth_dtm, check_finite=False):
    """Un-normalized sum of the loss terms, computed in the working type"""
    buffers, n, dtype = as_host_buffers(pred, truth, pred_dtm, truth_dtm)
    if check_finite:
        check_all_finite(*buffers)
    return np.sum(hausdorff_terms(*buffers), dtype=dtype)


def reference_loss(pred, truth, pred_dtm, truth_dtm, check_finite=False):
    """
    Loss based on the Hausdorff metric between the boundaries of pred and truth

    mean((pred - truth)^2 * (pred_dtm^2 + truth_dtm^2)), with pred_dtm and truth_dtm
    the precomputed distance transforms of each array. Arrays may have any shape as
    long as all four hold the same number of elements.

    Citation: https://doi.org/10.48550/arXiv.1904.10030

    Raises:
        ShapeMismatchError: element counts differ
        InvalidInputError: empty buffers, unsupported dtype, or non-finite values with check_finite
    """
    buffers, n, dtype = as_host_buffers(pred, truth, pred_dtm, truth_dtm)
    if check_finite:
        check_all_finite(*buffers)
    return np.mean(hausdorff_terms(*buffers), dtype=dtype)


def sequential_sum(pred, truth, pred_dtm, truth_dtm):
    """Term-by-term sum with math.fsum - exact rounding, used to check reduction order"""
    buffers, n, dtype = as_host_buffers(pred, truth, pred_dtm, truth_dtm)
    p, t, pd, td = (buf.astype(np.float64) for buf in buffers)
    return math.fsum(
        (p[i] - t[i]) ** 2 * (pd[i] ** 2 + td[i] ** 2) for i in range(n)
    )
