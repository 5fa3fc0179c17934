# Infrastructure Adapters Package
from .json_store import JsonCardSetRepository, JsonScheduleRepository, JsonSettingsRepository

__all__ = ["JsonCardSetRepository", "JsonScheduleRepository", "JsonSettingsRepository"]
