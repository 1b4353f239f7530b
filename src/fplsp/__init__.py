"""fplsp – FHIRPath Language Server and caching completion client."""
from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version('fplsp')
except PackageNotFoundError:
    __version__ = '0.0.0.dev0'
