"""Catalogue collaborator factory.

``get_catalogue()`` returns the active adapter. The in-memory adapter is the
default until the hosting application installs a real one with
``set_catalogue()``.
"""

from ordering.catalogue.memory_adapter import InMemoryCatalogue
from ordering.catalogue.port import ProductCatalogue

_current_catalogue: ProductCatalogue | None = None


def get_catalogue() -> ProductCatalogue:
    global _current_catalogue
    if _current_catalogue is None:
        _current_catalogue = InMemoryCatalogue()
    return _current_catalogue


def set_catalogue(catalogue: ProductCatalogue) -> None:
    global _current_catalogue
    _current_catalogue = catalogue


def reset_catalogue() -> None:
    global _current_catalogue
    _current_catalogue = None
