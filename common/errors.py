from __future__ import annotations


class MapImportError(Exception):
    """Base class for failures surfaced by the map bundle importer."""


class ArchiveError(MapImportError):
    """The archive payload could not be opened or one of its members could not be read."""


class HeaderError(MapImportError):
    """
    The raster header is unusable: wrong magic, bad dimensions, bad or missing
    max-value line, or the header does not finish inside the scan window.
    """
