"""Backend-for-frontend proxy in front of the Webflow Data API."""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("webflow-bff")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
