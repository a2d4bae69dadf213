"""GTFS OD Pipeline - Compile per-stop boarding/alighting rules into GTFS feeds."""

from gtfs_od_pipeline.api import compile_feed, rebuild, validate_feed
from gtfs_od_pipeline.version import REPORT_SCHEMA_VERSION, VERSION

__version__ = VERSION
__all__ = ["REPORT_SCHEMA_VERSION", "VERSION", "compile_feed", "rebuild", "validate_feed"]
