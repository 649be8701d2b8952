"""Metadata for broken_links."""

__all__ = [
    "__title__",
    "__version__",
    "__description__",
    "__requires_python__",
]

__title__ = "broken_links"
__version__ = "0.1.0"
__description__ = (
    "Time-bounded broken link checker: verifies the links on a page return the expected HTTP status."
)
__requires_python__ = ">=3.9"
