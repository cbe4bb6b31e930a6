"""BoardFlow automation backend.

Graph-based trigger -> condition -> action rule engine for project boards.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
