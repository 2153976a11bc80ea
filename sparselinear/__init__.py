"""Linear classification and regression solvers for sparse data, with a training command."""

__version__ = "0.1.0"
__all__ = ["types", "blas", "tron", "objectives", "mcsvm", "dual", "l1", "linear", "cli"]