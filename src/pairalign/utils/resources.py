"""
Optional dependency management and package-wide warnings.
"""
from functools import lru_cache
from importlib import import_module
from pathlib import Path
from typing import Callable


# Exceptions and Warnings ----------------------------------------------------------------------------------------------
class PairalignWarning(Warning): pass
class DependencyWarning(PairalignWarning): pass


# Classes --------------------------------------------------------------------------------------------------------------
class Resources:
    """
    Tracks which optional dependencies are importable.

    Attributes:
        package (str): The package name.
    """
    def __init__(self) -> None:
        self.package = Path(__file__).parent.parent.name

    @staticmethod
    @lru_cache(maxsize=None)
    def has_module(module_name: str) -> bool:
        """Checks if a python package is installed."""
        try:
            import_module(module_name)
            return True
        except ImportError: return False


# Decorators -----------------------------------------------------------------------------------------------------------
def jit(func: Callable = None, **options) -> Callable:
    """
    Compiles a kernel with numba when it is importable, and leaves it as plain Python otherwise.

    ``options`` are passed through to ``numba.jit`` and ignored when numba is missing.

    Examples:
        >>> @jit
        ... def kernel(a, b): ...

        >>> @jit(nopython=True, cache=True, nogil=True)
        ... def kernel(a, b): ...
    """
    if not RESOURCES.has_module('numba'):
        if func is not None: return func
        return lambda f: f
    from numba import jit as numba_jit
    return numba_jit(**options) if func is None else numba_jit(func, **options)


# Constants ------------------------------------------------------------------------------------------------------------
RESOURCES = Resources()
