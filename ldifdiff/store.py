"""
Keyed stores for the original snapshot.

The whole original snapshot is held in a keyed store, keyed by entry
identifier, while the target snapshot is streamed past it.  Small snapshots fit
in a :py:class:`MemoryStore`; larger ones go to a :py:class:`ShelveStore`, which
spills to a ``shelve`` database on disk.
"""

import logging
import shelve
import shutil
import tempfile
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import suppress
from pathlib import Path

from django.core.exceptions import ImproperlyConfigured

from .conf import STORE_BACKENDS, get_store_backend, get_store_dir
from .typing import LDAPData

logger = logging.getLogger(__name__)


class KeyedStore(ABC):
    """
    A mapping of entry identifier to raw ``(dn, attributes)`` entry data.

    Stores are context managers; leaving the context calls :py:meth:`close`.
    """

    @abstractmethod
    def put(self, key: str, data: LDAPData) -> None:
        """Store ``data`` under ``key``, replacing anything already there."""

    @abstractmethod
    def get(self, key: str) -> LDAPData | None:
        """Return the data stored under ``key``, or ``None``."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; a missing key is not an error."""

    @abstractmethod
    def items(self) -> Iterator[tuple[str, LDAPData]]:
        """Iterate over the remaining ``(key, data)`` pairs."""

    @abstractmethod
    def clear(self) -> None:
        """Remove everything."""

    @abstractmethod
    def __len__(self) -> int: ...

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def close(self) -> None:  # noqa: B027
        """Release any resources held by the store."""

    def __enter__(self) -> "KeyedStore":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class MemoryStore(KeyedStore):
    """A :py:class:`KeyedStore` backed by a ``dict``."""

    def __init__(self) -> None:
        self._data: dict[str, LDAPData] = {}

    def put(self, key: str, data: LDAPData) -> None:
        self._data[key] = data

    def get(self, key: str) -> LDAPData | None:
        return self._data.get(key)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def items(self) -> Iterator[tuple[str, LDAPData]]:
        yield from self._data.items()

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class ShelveStore(KeyedStore):
    """
    A :py:class:`KeyedStore` backed by a ``shelve`` database in a private
    temporary directory.  The directory is removed on :py:meth:`close`.

    Args:
        directory: Where to create the temporary directory; ``None`` means the
            system default.

    """

    def __init__(self, directory: str | None = None) -> None:
        self.path = Path(tempfile.mkdtemp(prefix="ldifdiff-", dir=directory))
        self._shelf: shelve.Shelf | None = shelve.open(str(self.path / "store"), flag="n")
        logger.debug("ldifdiff.store.open path=%s", self.path)

    @property
    def shelf(self) -> shelve.Shelf:
        if self._shelf is None:
            msg = f"Store at {self.path} is closed"
            raise ValueError(msg)
        return self._shelf

    def put(self, key: str, data: LDAPData) -> None:
        self.shelf[key] = data

    def get(self, key: str) -> LDAPData | None:
        return self.shelf.get(key)

    def delete(self, key: str) -> None:
        with suppress(KeyError):
            del self.shelf[key]

    def items(self) -> Iterator[tuple[str, LDAPData]]:
        # dbm iteration is not stable under modification, so only keys are
        # listed up front
        for key in list(self.shelf.keys()):
            data = self.shelf.get(key)
            if data is not None:
                yield key, data

    def clear(self) -> None:
        self.shelf.clear()

    def __len__(self) -> int:
        return len(self.shelf)

    def close(self) -> None:
        if self._shelf is not None:
            self._shelf.close()
            self._shelf = None
            shutil.rmtree(self.path, ignore_errors=True)
            logger.debug("ldifdiff.store.close path=%s", self.path)


def get_store(backend: str | None = None) -> KeyedStore:
    """
    Build a keyed store.

    Args:
        backend: ``"memory"`` or ``"shelve"``; defaults to the
            ``LDIFDIFF_STORE`` setting.

    Raises:
        ImproperlyConfigured: If ``backend`` is not a known store.

    Returns:
        A new, empty store.

    """
    if backend is None:
        backend = get_store_backend()
    if backend == "memory":
        return MemoryStore()
    if backend == "shelve":
        return ShelveStore(get_store_dir())
    msg = f"Unknown store {backend!r}; expected one of {', '.join(STORE_BACKENDS)}"
    raise ImproperlyConfigured(msg)
