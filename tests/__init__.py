"""
Test Suite for the Parallel Mean-Shift Transform

This package contains unit tests and integration tests for:
- Mean-shift kernel correctness
- Work partitioning and the iteration driver
- The fixed-count loop
- The brute-force verifier
- The command-line interface

Run tests with: pytest -v
"""
