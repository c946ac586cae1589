"""A guarded, fixed-size simulated heap for catching leaks and overruns in tests."""

__version__ = "0.1.0"
__all__ = ["config", "heap"]