#!/usr/bin/env python3
"""
Main entry point for the Hausdorff loss project.
Builds random masks and distance maps and compares the GPU and reference losses.
"""

import argparse
import time

import numpy as np

from hausdorff.errors import HausdorffLossError
from hausdorff.loss import (
    DEFAULT_MAX_THREADS,
    MIN_GPU_ELEMENTS,
    hausdorff_loss,
    reduction_loss,
    reference_loss,
)


def make_inputs(size, dims, boolean=False, seed=None):
    """Random predictions, targets and distance maps of shape (size,) * dims"""
    rng = np.random.default_rng(seed)
    shape = (size,) * dims

    if boolean:
        truth = rng.integers(0, 2, shape).astype(bool)
        pred = rng.integers(0, 2, shape).astype(bool)
    else:
        truth = rng.random(shape)
        pred = rng.random(shape)

    truth_dtm = rng.random(shape)
    pred_dtm = rng.random(shape)
    return pred, truth, pred_dtm, truth_dtm


def run_comparison(size, dims, boolean, max_threads, seed, reference_only):
    """Print both losses, their timings and relative difference"""
    pred, truth, pred_dtm, truth_dtm = make_inputs(size, dims, boolean, seed)
    print(f"Inputs: shape {pred.shape}, pred dtype {pred.dtype}, dtm dtype {pred_dtm.dtype}")

    start = time.perf_counter()
    expected = reference_loss(pred, truth, pred_dtm, truth_dtm)
    print(f"Reference loss: {expected:.8f} ({time.perf_counter() - start:.4f}s)")

    if reference_only:
        return expected

    start = time.perf_counter()
    actual = hausdorff_loss(pred, truth, pred_dtm, truth_dtm,
                            max_threads=max_threads, min_gpu_elements=0)
    print(f"Dispatched loss: {actual:.8f} ({time.perf_counter() - start:.4f}s)")

    if expected != 0:
        print(f"Relative difference: {abs(actual - expected) / abs(expected):.3e}")
    return actual


def main():
    """Main entry point for the application."""
    print("Starting Hausdorff loss comparison...")

    parser = argparse.ArgumentParser(description="Compare the GPU and numpy Hausdorff losses.")
    parser.add_argument("-n", "--size", type=int, help="Length of each array axis.")
    parser.add_argument("-d", "--dims", type=int, choices=[1, 2, 3], help="Number of array axes.")
    parser.add_argument("-b", "--boolean", action="store_true", help="Use boolean predictions and targets.")
    parser.add_argument("-t", "--threads", type=int, help="Maximum threads per block.")
    parser.add_argument("-s", "--seed", type=int, help="Random seed.")
    parser.add_argument("-r", "--reference_only", action="store_true", help="Skip the GPU path.")
    parser.add_argument("--strict", action="store_true", help="Force the GPU path without fallback.")

    args = parser.parse_args()
    if args.strict and args.reference_only:
        parser.error("--strict and --reference_only cannot be combined")

    params = {
        "size": 64,
        "dims": 3,
        "boolean": args.boolean,
        "max_threads": DEFAULT_MAX_THREADS,
        "seed": None,
        "reference_only": args.reference_only,
    }
    for key, value in (("size", args.size), ("dims", args.dims),
                       ("max_threads", args.threads), ("seed", args.seed)):
        if value is not None:
            params[key] = value

    if args.strict:
        pred, truth, pred_dtm, truth_dtm = make_inputs(params["size"], params["dims"],
                                                       params["boolean"], params["seed"])
        try:
            loss = reduction_loss(pred, truth, pred_dtm, truth_dtm, max_threads=params["max_threads"])
        except HausdorffLossError as e:
            print(f"❌ GPU loss failed: {e}")
            raise SystemExit(1)
        print(f"GPU loss: {loss:.8f}")
        return

    if params["size"] ** params["dims"] < MIN_GPU_ELEMENTS:
        print(f"Note: fewer than {MIN_GPU_ELEMENTS} elements would normally use the reference path")
    run_comparison(**params)


if __name__ == "__main__":
    main()
