"""One-time initialization and disposal for host components."""

import asyncio
import logging
from abc import ABC, abstractmethod

from projreload.errors import ObjectDisposedError

logger = logging.getLogger(__name__)


class OnceInitializedOnceDisposed(ABC):
    """Runs initialize_core at most once and dispose_core exactly once.

    Concurrent initialize() calls share a single initialization. A
    component cannot be initialized again once it has been disposed.
    """

    def __init__(self) -> None:
        self._lifecycle_lock = asyncio.Lock()
        self._initialized = False
        self._disposed = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    async def initialize(self) -> None:
        async with self._lifecycle_lock:
            if self._disposed:
                raise ObjectDisposedError(f"{type(self).__name__} has been disposed")
            if self._initialized:
                return
            await self.initialize_core()
            self._initialized = True
            logger.debug(f"Initialized {self!r}")

    async def dispose(self) -> None:
        async with self._lifecycle_lock:
            if self._disposed:
                return
            self._disposed = True
            await self.dispose_core(self._initialized)
            logger.debug(f"Disposed {self!r}")

    @abstractmethod
    async def initialize_core(self) -> None:
        ...

    @abstractmethod
    async def dispose_core(self, initialized: bool) -> None:
        ...
