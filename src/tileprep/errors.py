from __future__ import annotations


class TilePrepError(Exception):
    """Base class for every failure raised by the tile preparation pipeline."""


class ConfigError(TilePrepError, ValueError):
    """Invalid sizes or ranges (tile larger than image, retina larger than tile, ...)."""


class RasterIOError(TilePrepError, OSError):
    """Missing/unreadable source raster or label mask, or a failed write."""


class ManifestError(TilePrepError, ValueError):
    """Label out of range against the class registry, duplicate path, malformed document."""


class ClampError(TilePrepError, ValueError):
    """Degenerate geometry, e.g. an empty range of valid tile offsets."""
