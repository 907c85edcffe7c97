"""Object storage data models."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RemoteObject:
    """An object stored in a bucket."""
    bucket: str
    key: str
