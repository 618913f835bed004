from .destination import Destination
from .destination_catalog import CATALOG_MAX_DEPTH, IGNORED_DIRECTORY_NAMES, build_eviction_catalog

__all__ = ["Destination", "CATALOG_MAX_DEPTH", "IGNORED_DIRECTORY_NAMES", "build_eviction_catalog"]
