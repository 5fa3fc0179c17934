"""
JSON file store: infrastructure adapters for card sets, schedule states and
study settings.

Layout of the data directory:
    manifest.json        {"files": ["spanish", ...]}
    <set>.json           {"name", "description", "cards": [...]}
    <set>-fsrs.json      {"cards": {"<card id>": <schedule state>}}
    settings.json        camelCase study settings
"""

import json
import logging
from pathlib import Path
from typing import Any

from cardwise.domain.constants import MANIFEST_FILE, SCHEDULE_FILE_SUFFIX, SETTINGS_FILE
from cardwise.domain.models import CardSet, ScheduleState
from cardwise.domain.ports import CardSetRepository, ScheduleRepository, SettingsRepository
from cardwise.infrastructure.serialization import (
    card_set_from_dict,
    card_set_to_dict,
    state_from_dict,
    state_to_dict,
)

logger = logging.getLogger(__name__)

# Names of the files that live beside the card sets
_RESERVED_NAMES = {Path(MANIFEST_FILE).stem, Path(SETTINGS_FILE).stem}


def validate_file_name(file_name: str) -> str:
    """
    Reject names that could escape the data directory or clash with store files.

    Raises:
        ValueError: Empty name, path separator, '..', a reserved name, or a
            name that would collide with a schedule file.
    """
    if not file_name or "/" in file_name or "\\" in file_name or ".." in file_name:
        raise ValueError(f"Invalid file name: {file_name!r}")
    if file_name in _RESERVED_NAMES:
        raise ValueError(f"Reserved file name: {file_name!r}")
    if file_name.endswith(SCHEDULE_FILE_SUFFIX):
        raise ValueError(
            f"File name {file_name!r} must not end with {SCHEDULE_FILE_SUFFIX!r}"
        )
    return file_name


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def _write_json(path: Path, data: Any) -> None:
    """Replace `path` atomically through a sibling temp file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(f"{path.name}.tmp")
    try:
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(path)
    finally:
        tmp.unlink(missing_ok=True)


class JsonCardSetRepository(CardSetRepository):
    """
    Card sets as one JSON file each, listed in manifest.json.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir

    @property
    def manifest_path(self) -> Path:
        return self.data_dir / MANIFEST_FILE

    async def list_set_names(self) -> list[str]:
        if not self.manifest_path.exists():
            return []
        manifest = _read_json(self.manifest_path)
        return list(manifest.get("files", []))

    async def get_set(self, file_name: str) -> CardSet | None:
        path = self.data_dir / f"{validate_file_name(file_name)}.json"
        if not path.exists():
            return None
        try:
            return card_set_from_dict(file_name, _read_json(path))
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Failed to load card set {file_name}: {e}")
            return None

    async def save_set(self, card_set: CardSet) -> None:
        name = validate_file_name(card_set.file_name)
        _write_json(self.data_dir / f"{name}.json", card_set_to_dict(card_set))

        names = await self.list_set_names()
        if name not in names:
            _write_json(self.manifest_path, {"files": [*names, name]})
            logger.info(f"Registered {name} in {MANIFEST_FILE}")

        logger.debug(f"[write] {name}.json: {len(card_set.cards)} cards")


class JsonScheduleRepository(ScheduleRepository):
    """
    Schedule states stored next to each set in <set>-fsrs.json.
    """

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir

    def _path(self, set_name: str) -> Path:
        return self.data_dir / f"{validate_file_name(set_name)}{SCHEDULE_FILE_SUFFIX}.json"

    async def load_states(self, set_name: str) -> dict[str, ScheduleState]:
        path = self._path(set_name)
        if not path.exists():
            # Nothing studied yet
            return {}

        data = _read_json(path)
        return {
            card_id: state_from_dict(card_id, record)
            for card_id, record in data.get("cards", {}).items()
        }

    async def save_states(self, set_name: str, states: dict[str, ScheduleState]) -> None:
        path = self._path(set_name)
        _write_json(
            path,
            {"cards": {card_id: state_to_dict(state) for card_id, state in states.items()}},
        )
        logger.debug(f"[write] {path.name}: {len(states)} schedule states")


class JsonSettingsRepository(SettingsRepository):
    def __init__(self, path: Path):
        self.path = path

    async def load(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            data = _read_json(self.path)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable settings file {self.path}: {e}")
            return None
        return data if isinstance(data, dict) else None

    async def save(self, record: dict[str, Any]) -> None:
        _write_json(self.path, record)
