"""
Cellarsync package initializer.

This package keeps a local copy of the ERP wine catalogue and sales orders in
sync with the upstream REST API and exposes it through a small query API.

The package exposes a ``__version__`` attribute read from the installed
distribution metadata (pyproject.toml is the single source of truth).
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("cellarsync")
except PackageNotFoundError:
    # Package is not installed (running from source without pip install -e .)
    __version__ = "0.0.0.dev"

__all__: list[str] = ["__version__"]
