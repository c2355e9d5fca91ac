"""
Configuration for ldifdiff.

Settings are read from Django settings with an ``LDIFDIFF_`` prefix.  When no
settings module has been selected (either through ``DJANGO_SETTINGS_MODULE``
or the ``--settings`` command line option), Django is configured with the
defaults below so that the library also works standalone.
"""

import os
from typing import Any

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

#: The attribute whose value identifies an entry across renames.
DEFAULT_ID_ATTRIBUTE = "entryUUID"

#: Server maintained attributes that are excluded from comparison and from
#: add records unless system attributes are explicitly included.
DEFAULT_SYSTEM_ATTRIBUTES = (
    "entryUUID",
    "entryCSN",
    "createTimestamp",
    "modifyTimestamp",
    "creatorsName",
    "modifiersName",
    "structuralObjectClass",
)

#: The keyed store backends understood by :func:`ldifdiff.store.get_store`.
STORE_BACKENDS = ("memory", "shelve")


def _settings():
    if not settings.configured and not os.environ.get("DJANGO_SETTINGS_MODULE"):
        settings.configure()
    return settings


def get_config(setting_name: str, default_value: Any) -> Any:
    """
    Get configuration value from Django settings with fallback.

    Args:
        setting_name: Name of the setting (without LDIFDIFF_ prefix)
        default_value: Default value if setting not found

    Returns:
        Configuration value from settings or default

    """
    return getattr(_settings(), f"LDIFDIFF_{setting_name}", default_value)


def get_id_attribute() -> str:
    """Get the stable identifier attribute name."""
    return get_config("ID_ATTRIBUTE", DEFAULT_ID_ATTRIBUTE)


def get_system_attributes() -> tuple[str, ...]:
    """
    Get the system attribute names, always including the identifier
    attribute.
    """
    names = tuple(get_config("SYSTEM_ATTRIBUTES", DEFAULT_SYSTEM_ATTRIBUTES))
    id_attribute = get_id_attribute()
    if id_attribute.lower() not in {name.lower() for name in names}:
        names += (id_attribute,)
    return names


def get_store_backend() -> str:
    """Get the keyed store backend name."""
    return get_config("STORE", "memory")


def get_store_dir() -> str | None:
    """Get the directory for disk backed stores; ``None`` means system temp."""
    return get_config("STORE_DIR", None)


def get_progress_interval() -> int:
    """Get how many records pass between progress callbacks."""
    return get_config("PROGRESS_INTERVAL", 10000)


def get_encoding() -> str:
    """Get the text encoding used for LDIF input and output."""
    return get_config("ENCODING", "utf-8")


def validate_settings() -> None:
    """
    Validate ldifdiff settings for consistency.

    Raises:
        ImproperlyConfigured: If settings are invalid

    """
    if not get_id_attribute():
        msg = "LDIFDIFF_ID_ATTRIBUTE must name an attribute"
        raise ImproperlyConfigured(msg)
    backend = get_store_backend()
    if backend not in STORE_BACKENDS:
        msg = (
            f"LDIFDIFF_STORE ({backend!r}) must be one of "
            f"{', '.join(STORE_BACKENDS)}"
        )
        raise ImproperlyConfigured(msg)
    interval = get_progress_interval()
    if not isinstance(interval, int) or interval <= 0:
        msg = f"LDIFDIFF_PROGRESS_INTERVAL ({interval!r}) must be a positive integer"
        raise ImproperlyConfigured(msg)
