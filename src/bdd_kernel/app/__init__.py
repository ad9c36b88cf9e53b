from .runtime import BddRuntime, run_features

__all__ = ["BddRuntime", "run_features"]
