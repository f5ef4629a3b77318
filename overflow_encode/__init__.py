"""
Overflow Encode

Routes video encodes to a backup region when the primary region's queue is
backed up, and handles the cross-region copy and cleanup around them.
"""

from .config import Config, RegionSettings
from .regions import CopyDirection, RegionContext, Regions, build_regions
from .router import Route, choose
from .workflow import EncodeOutcome, EncodeWorkflow

__version__ = "0.1.0"

__all__ = [
    "Config",
    "RegionSettings",
    "CopyDirection",
    "RegionContext",
    "Regions",
    "build_regions",
    "Route",
    "choose",
    "EncodeOutcome",
    "EncodeWorkflow",
]
