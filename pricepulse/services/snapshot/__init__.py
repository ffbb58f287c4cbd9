"""
PRICEPULSE - Snapshot Services
Bootstrap snapshot providers and payload mapping.
"""

from .provider import (
    SnapshotProvider,
    StaticSnapshotProvider,
    JsonFileSnapshotProvider,
    snapshot_from_bootstrap,
    asset_from_element,
    annotate_flag_changes,
)

__all__ = [
    'SnapshotProvider',
    'StaticSnapshotProvider',
    'JsonFileSnapshotProvider',
    'snapshot_from_bootstrap',
    'asset_from_element',
    'annotate_flag_changes',
]
