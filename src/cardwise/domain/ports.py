"""
Ports (interfaces) for persistence.

These define the contract that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from typing import Any

from .models import CardSet, ScheduleState


class CardSetRepository(ABC):
    """
    Port for loading and saving card sets.

    Implementations:
        - JsonCardSetRepository: manifest.json plus one JSON file per set.
    """

    @abstractmethod
    async def list_set_names(self) -> list[str]:
        """Return the file names listed in the manifest, in manifest order."""
        pass

    @abstractmethod
    async def get_set(self, file_name: str) -> CardSet | None:
        """Load one set, or None if it does not exist."""
        pass

    @abstractmethod
    async def save_set(self, card_set: CardSet) -> None:
        """Persist a set, adding it to the manifest if needed."""
        pass


class ScheduleRepository(ABC):
    """
    Port for the per-set schedule states, keyed by card ID.
    """

    @abstractmethod
    async def load_states(self, set_name: str) -> dict[str, ScheduleState]:
        """
        Fetch all stored states of a set.

        Returns:
            Mapping of card ID to state; empty when nothing was stored yet.
        """
        pass

    @abstractmethod
    async def save_states(self, set_name: str, states: dict[str, ScheduleState]) -> None:
        """Replace the stored states of a set."""
        pass


class SettingsRepository(ABC):
    """
    Port for the user-editable study settings record.
    """

    @abstractmethod
    async def load(self) -> dict[str, Any] | None:
        """Return the stored settings record, or None if none was saved."""
        pass

    @abstractmethod
    async def save(self, record: dict[str, Any]) -> None:
        pass
