import sys
import os
os.environ.setdefault("NUMBA_ENABLE_CUDASIM", "1")
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import numpy as np
import pytest
from numba import cuda

from hausdorff.errors import DeviceError, InvalidInputError, ShapeMismatchError
from hausdorff.kernels import hausdorff_kernels
from hausdorff.kernels.hausdorff_kernels import (
    LaunchPlan,
    launch_hausdorff_sum,
    plan_launch,
    reduction_loss,
)
from hausdorff.reference import reference_loss, sequential_sum

# Small blocks keep the simulator fast
TEST_THREADS = 32


def random_inputs(shape, seed, dtype=np.float64):
    rng = np.random.default_rng(seed)
    return [rng.random(shape).astype(dtype) for _ in range(4)]


class TestLaunchPlan():
    def run_tests(self):
        self.test_full_blocks()
        self.test_partial_last_block()
        self.test_small_input()
        self.test_invalid_requests()

    def test_full_blocks(self):
        "it should use max_threads per block when n is a multiple"
        assert plan_launch(1024, np.float32, 256) == LaunchPlan(256, 4, 1024)
        print("Full blocks plan test passed")

    def test_partial_last_block(self):
        "it should add a block for the remainder"
        assert plan_launch(257, np.float64, 256) == LaunchPlan(256, 2, 2048)
        print("Partial block plan test passed")

    def test_small_input(self):
        "it should shrink the block to n when n is below max_threads"
        assert plan_launch(3, np.float64, 256) == LaunchPlan(3, 1, 24)
        print("Small input plan test passed")

    def test_invalid_requests(self):
        "it should reject empty inputs and out of range block sizes"
        with pytest.raises(InvalidInputError):
            plan_launch(0, np.float32)
        with pytest.raises(InvalidInputError):
            plan_launch(10, np.float32, 0)
        with pytest.raises(InvalidInputError):
            plan_launch(10, np.float32, 2048)
        print("Invalid plan test passed")


class TestHausdorffKernel():
    def run_tests(self):
        self.test_zero_distance()
        self.test_non_degenerate()
        self.test_matches_reference()
        self.test_boolean_predictions()
        self.test_float32_inputs()
        self.test_float64_result_type()
        self.test_concrete_scenarios()
        self.test_non_power_of_two_blocks()
        self.test_single_thread_blocks()
        self.test_device_array_inputs()

    def test_zero_distance(self):
        "it should return exactly zero for identical inputs"
        for shape in [(40,), (6, 7), (3, 4, 5)]:
            truth, dtm, _, _ = random_inputs(shape, seed=4)
            assert reduction_loss(truth, truth, dtm, dtm, max_threads=TEST_THREADS) == 0
        print("Kernel zero distance test passed")

    def test_non_degenerate(self):
        "it should be non-zero for independent random inputs"
        pred, truth, pred_dtm, truth_dtm = random_inputs((6, 7), seed=5)
        assert reduction_loss(pred, truth, pred_dtm, truth_dtm, max_threads=TEST_THREADS) != 0
        print("Kernel non-degenerate test passed")

    def test_matches_reference(self):
        "it should agree with the reference for 1D, 2D and 3D inputs"
        for seed, shape in enumerate([(100,), (9, 11), (4, 5, 6)]):
            buffers = random_inputs(shape, seed)
            actual = reduction_loss(*buffers, max_threads=TEST_THREADS)
            assert np.isclose(actual, reference_loss(*buffers), rtol=1e-5), shape
        print("Kernel reference agreement test passed")

    def test_boolean_predictions(self):
        "it should promote boolean masks against float64 distance maps"
        rng = np.random.default_rng(6)
        shape = (4, 5, 6)
        truth = rng.integers(0, 2, shape).astype(bool)
        pred = rng.integers(0, 2, shape).astype(bool)
        pred_dtm, truth_dtm = rng.random(shape), rng.random(shape)

        actual = reduction_loss(pred, truth, pred_dtm, truth_dtm, max_threads=TEST_THREADS)
        expected = reference_loss(pred, truth, pred_dtm, truth_dtm)
        assert np.isclose(actual, expected, rtol=1e-5)
        print("Kernel boolean test passed")

    def test_float32_inputs(self):
        "it should reduce float32 inputs in float32"
        buffers = random_inputs((77,), seed=7, dtype=np.float32)
        actual = reduction_loss(*buffers, max_threads=TEST_THREADS)
        expected = reference_loss(*buffers)
        assert isinstance(actual, np.float32)
        assert isinstance(expected, np.float32)
        assert np.isclose(actual, expected, rtol=1e-4)
        print("Kernel float32 test passed")

    def test_float64_result_type(self):
        "it should return a float64 scalar when the distance maps are float64"
        rng = np.random.default_rng(14)
        pred = rng.integers(0, 2, 30).astype(bool)
        truth = rng.integers(0, 2, 30).astype(bool)
        pred_dtm, truth_dtm = rng.random(30), rng.random(30)
        actual = reduction_loss(pred, truth, pred_dtm, truth_dtm, max_threads=TEST_THREADS)
        assert isinstance(actual, np.float64)
        assert isinstance(reference_loss(pred, truth, pred_dtm, truth_dtm), np.float64)
        print("Kernel float64 result type test passed")

    def test_concrete_scenarios(self):
        "it should give 0 for matching masks and 2 for opposite masks with unit maps"
        dtm = [0.5, 0.2, 0.9, 0.1]
        assert reduction_loss([1, 0, 1, 0], [1, 0, 1, 0], dtm, dtm) == 0
        assert reduction_loss([1, 1, 1, 1], [0, 0, 0, 0], [1, 1, 1, 1], [1, 1, 1, 1]) == 2.0
        print("Kernel concrete scenario test passed")

    def test_non_power_of_two_blocks(self):
        "it should not drop elements when block sizes are odd or n leaves a partial block"
        for max_threads in (5, 6, 7):
            for n in (max_threads, max_threads + 1, 3 * max_threads - 1):
                buffers = random_inputs((n,), seed=n)
                actual = launch_hausdorff_sum(*buffers, max_threads=max_threads)
                assert np.isclose(actual, sequential_sum(*buffers), rtol=1e-12), (max_threads, n)
        print("Kernel non-power-of-two test passed")

    def test_single_thread_blocks(self):
        "it should work with one thread per block"
        buffers = random_inputs((9,), seed=8)
        actual = launch_hausdorff_sum(*buffers, max_threads=1)
        assert np.isclose(actual, sequential_sum(*buffers), rtol=1e-12)
        print("Kernel single thread test passed")

    def test_device_array_inputs(self):
        "it should accept buffers already on the device"
        buffers = random_inputs((6, 7), seed=9)
        device_buffers = [cuda.to_device(buf) for buf in buffers]
        actual = reduction_loss(*device_buffers, max_threads=TEST_THREADS)
        assert np.isclose(actual, reference_loss(*buffers), rtol=1e-5)
        print("Kernel device array test passed")


class TestKernelErrors():
    def run_tests(self):
        self.test_shape_mismatch_before_device()
        self.test_empty_buffers()
        self.test_non_finite()
        self.test_non_contiguous_device_array()
        self.test_launch_failure_wrapped()

    def test_shape_mismatch_before_device(self):
        "it should raise ShapeMismatchError without touching the device"
        def fail_on_device():
            raise AssertionError("device touched before validation")

        original = hausdorff_kernels.ensure_device
        hausdorff_kernels.ensure_device = fail_on_device
        try:
            with pytest.raises(ShapeMismatchError):
                reduction_loss(np.zeros(8), np.zeros(8), np.zeros(8), np.zeros((3, 3)))
        finally:
            hausdorff_kernels.ensure_device = original
        print("Kernel shape mismatch test passed")

    def test_empty_buffers(self):
        "it should refuse to launch over zero elements"
        with pytest.raises(InvalidInputError):
            reduction_loss(np.zeros(0), np.zeros(0), np.zeros(0), np.zeros(0))
        print("Kernel empty buffers test passed")

    def test_non_finite(self):
        "it should surface NaN inputs when check_finite is set"
        pred = np.array([0.0, np.inf, 1.0, 2.0])
        ones = np.ones(4)
        with pytest.raises(InvalidInputError):
            reduction_loss(pred, ones, ones, ones, check_finite=True)
        print("Kernel non-finite test passed")

    def test_non_contiguous_device_array(self):
        "it should reject Fortran ordered device buffers before flattening them"
        buffers = random_inputs((6, 7), seed=15)
        fortran = FortranDeviceArray(np.asfortranarray(buffers[0]))

        with pytest.raises(InvalidInputError) as excinfo:
            reduction_loss(fortran, *buffers[1:], max_threads=TEST_THREADS)
        assert "C-contiguous" in str(excinfo.value)
        print("Kernel non-contiguous device array test passed")

    def test_launch_failure_wrapped(self):
        "it should raise DeviceError chained to the driver failure and return nothing"
        failure = RuntimeError("launch failed")
        key = np.dtype(np.float64)
        original = hausdorff_kernels.HAUSDORFF_KERNELS[key]
        hausdorff_kernels.HAUSDORFF_KERNELS[key] = BrokenKernel(failure)
        try:
            with pytest.raises(DeviceError) as excinfo:
                reduction_loss(*random_inputs((20,), seed=16), max_threads=TEST_THREADS)
        finally:
            hausdorff_kernels.HAUSDORFF_KERNELS[key] = original
        assert excinfo.value.__cause__ is failure
        print("Kernel launch failure test passed")


class FortranDeviceArray():
    """Device array stand-in with DeviceNDArray's layout rules: ravel only works when C-contiguous"""
    __cuda_ndarray__ = True

    def __init__(self, ary):
        self._ary = ary
        self.shape = ary.shape
        self.dtype = ary.dtype
        self.size = ary.size

    def is_c_contiguous(self):
        return self._ary.flags.c_contiguous

    def ravel(self, order='C'):
        if not self.is_c_contiguous():
            raise NotImplementedError("ravel on non-contiguous array")
        return self._ary.ravel(order)

    def copy_to_host(self):
        return self._ary.copy()


class BrokenKernel():
    """Kernel stand-in whose launch raises the given error"""

    def __init__(self, error):
        self.error = error

    def __getitem__(self, config):
        return self.launch

    def launch(self, *args):
        raise self.error
