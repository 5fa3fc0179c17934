"""
Service Factory
Centralizes wiring of repositories and services from the resolved config.
"""

from cardwise.application.config import AppConfig
from cardwise.application.stats.service import StudyStatsService
from cardwise.application.study_service import StudyService
from cardwise.infrastructure.adapters.json_store import (
    JsonCardSetRepository,
    JsonScheduleRepository,
    JsonSettingsRepository,
)


def get_study_service(config: AppConfig) -> StudyService:
    return StudyService(
        card_repo=JsonCardSetRepository(config.data_dir),
        schedule_repo=JsonScheduleRepository(config.data_dir),
        settings_repo=JsonSettingsRepository(config.settings_path),
        defaults=config.study,
    )


def get_stats_service(config: AppConfig) -> StudyStatsService:
    return StudyStatsService(
        card_repo=JsonCardSetRepository(config.data_dir),
        schedule_repo=JsonScheduleRepository(config.data_dir),
    )
