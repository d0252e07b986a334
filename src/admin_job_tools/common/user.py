from typing import Protocol, runtime_checkable


@runtime_checkable
class UserLike(Protocol):
    """Whatever the host application's auth dependency returns."""

    id: str
