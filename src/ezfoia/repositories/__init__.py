"""Repository layer for EZFOIA.

In-memory stores expose plain synchronous methods; the SQLAlchemy
repositories expose coroutines. Services call both through ``resolve()``
so they can be wired to either backend.
"""

from __future__ import annotations

import inspect
from typing import Awaitable, TypeVar

T = TypeVar("T")


async def resolve(value: T | Awaitable[T]) -> T:
    """Await ``value`` if it is awaitable, otherwise return it unchanged.

    Usage::

        count = await resolve(repo.count_for_user(user_id))
    """
    if inspect.isawaitable(value):
        return await value  # type: ignore[return-value]
    return value  # type: ignore[return-value]
