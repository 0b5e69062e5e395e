"""Accelerated render backends: numba, worker processes and CuPy."""
