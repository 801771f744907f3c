"""Order store factory.

Provides get_store() / set_store() to swap implementations:
- ProteanOrderStore over the ordering domain's repositories (default)
- test doubles that simulate a slow or failing store
"""

from ordering.store.port import OrderStore

_current_store: OrderStore | None = None


def get_store() -> OrderStore:
    """Return the current order store. Defaults to ProteanOrderStore."""
    global _current_store
    if _current_store is None:
        from ordering.store.protean_store import ProteanOrderStore

        _current_store = ProteanOrderStore()
    return _current_store


def set_store(store: OrderStore) -> None:
    """Override the active order store (useful for tests)."""
    global _current_store
    _current_store = store


def reset_store() -> None:
    global _current_store
    _current_store = None
