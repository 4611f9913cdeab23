"""Exception types raised by epub-pager."""


class EpubPagerError(Exception):
    """Base class for all epub-pager errors."""


class ResourceNotFoundError(EpubPagerError, FileNotFoundError):
    """A resource is missing from the publication container."""


class FragmentError(EpubPagerError, ValueError):
    """A fragment address is malformed or does not match a document."""


class LayoutError(EpubPagerError):
    """A layout session failed to produce a page."""
