"""Package model and pagination controller for reflowable EPUB publications."""

__version__ = "0.1.0"
