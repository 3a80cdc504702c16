from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from ..domain.errors import StorageError


@asynccontextmanager
async def storage_deadline(
    timeout: Optional[float],
    *,
    operation: str,
    writes: bool = False,
) -> AsyncIterator[None]:
    """
    Bound a storage round trip and turn expiry into StorageError.

    With `writes=True` the error carries `outcome_unknown`: the write may have
    reached the store before the deadline cut the transaction short.
    `timeout=None` leaves the block unbounded.
    """
    try:
        async with asyncio.timeout(timeout):
            yield
    except TimeoutError as exc:
        raise StorageError(f"{operation} timed out after {timeout}s", outcome_unknown=writes) from exc
