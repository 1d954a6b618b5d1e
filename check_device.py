#!/usr/bin/env python3
"""
CUDA readiness check for the Hausdorff loss kernels
Run this before training to confirm the GPU path agrees with the reference
"""

import sys
import numpy as np


def test_basic_imports():
    """Test basic imports"""
    print("🔍 Testing basic imports...")
    try:
        import numba
        print(f"✅ Numba version: {numba.__version__}")
    except ImportError as e:
        print(f"❌ Numba import failed: {e}")
        return False

    print(f"✅ NumPy version: {np.__version__}")
    return True


def test_cuda_availability():
    """Test CUDA availability"""
    print("\n🔍 Testing CUDA availability...")
    from numba import cuda

    if not cuda.is_available():
        print("❌ CUDA is not available - hausdorff_loss will use the numpy reference")
        return False

    print("✅ CUDA is available")
    return True


def get_gpu_info():
    """Print the device limits the launch planner depends on"""
    print("\n🔍 Getting GPU information...")
    from numba import cuda
    from hausdorff.loss import DEFAULT_MAX_THREADS

    try:
        device = cuda.get_current_device()
        print(f"✅ GPU Name: {device.name}")
        print(f"✅ Compute Capability: {device.compute_capability}")
        max_threads = getattr(device, "MAX_THREADS_PER_BLOCK", None)
        if max_threads is not None:
            print(f"✅ Max Threads Per Block: {max_threads} (planner default {DEFAULT_MAX_THREADS})")
    except Exception as e:
        print(f"❌ GPU info failed: {e}")
        return False
    return True


def test_hausdorff_agreement(size=1000, max_threads=256):
    """Compare the kernel against the reference on an awkward length"""
    print("\n🔍 Testing Hausdorff kernel against reference...")
    from hausdorff.errors import HausdorffLossError
    from hausdorff.loss import reduction_loss, reference_loss

    rng = np.random.default_rng(0)
    pred, truth, pred_dtm, truth_dtm = (rng.random(size + 1) for _ in range(4))

    try:
        actual = reduction_loss(pred, truth, pred_dtm, truth_dtm, max_threads=max_threads)
    except HausdorffLossError as e:
        print(f"❌ Hausdorff kernel failed: {e}")
        return False

    expected = reference_loss(pred, truth, pred_dtm, truth_dtm)
    if np.isclose(actual, expected, rtol=1e-5):
        print(f"✅ Hausdorff kernel matches reference ({actual:.8f})")
        return True

    print(f"❌ Hausdorff kernel mismatch: gpu {actual:.8f}, reference {expected:.8f}")
    return False


def main():
    """Run all readiness checks"""
    print("🚀 Hausdorff Loss GPU Check")
    print("=" * 40)

    tests = [
        ("Basic Imports", test_basic_imports),
        ("CUDA Availability", test_cuda_availability),
        ("GPU Information", get_gpu_info),
        ("Kernel Agreement", test_hausdorff_agreement),
    ]

    results = []
    for test_name, test_func in tests:
        print(f"\n{'='*20} {test_name} {'='*20}")
        success = test_func()
        results.append((test_name, success))
        if test_name == "CUDA Availability" and not success:
            break

    print("\n" + "="*60)
    print("🎯 CHECK SUMMARY")
    print("="*60)

    passed = 0
    for test_name, success in results:
        status = "✅ PASSED" if success else "❌ FAILED"
        print(f"{test_name:25} {status}")
        if success:
            passed += 1

    print(f"\nTotal: {passed}/{len(tests)} checks passed")

    if passed == len(tests):
        print("\n🎉 GPU path is ready")
        sys.exit(0)
    else:
        print(f"\n⚠️  {len(tests) - passed} checks failed.")
        sys.exit(1)


if __name__ == "__main__":
    main()
