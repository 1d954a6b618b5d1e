import os
import sys

# Run the kernels on numba's CUDA simulator unless a real device is requested
os.environ.setdefault("NUMBA_ENABLE_CUDASIM", "1")
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))
