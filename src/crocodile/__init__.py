"""Human-in-the-loop agent orchestrator: durable store and role sessions."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("crocodile")
except PackageNotFoundError:  # pragma: no cover - source checkout without install
    __version__ = "0.0.0"
