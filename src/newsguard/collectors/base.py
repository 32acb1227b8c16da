"""Base source abstract class for all news providers"""

from abc import ABC, abstractmethod
from typing import Any


class BaseSource(ABC):
    """Abstract base class for one upstream news provider

    Concrete HTTP clients live outside the control plane; they only need
    a stable name (used as the circuit breaker key) and a fetch().
    """

    name: str

    @abstractmethod
    async def fetch(self) -> list[Any]:
        """Fetch items from the provider

        Returns:
            Items exposing url, headline, source and published_at

        Raises:
            Any error; the aggregator records it against this source
        """
        pass
