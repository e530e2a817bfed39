import json
import logging
from pathlib import Path
from typing import Union

from pydantic import ValidationError as SchemaError

from peerflex.schemas.preferences import Preferences, PreferencesUpdate


logger = logging.getLogger(__name__)

PERSISTED_FIELDS = {"theme", "language"}


class PreferencesStore:
    """Process-wide theme/language. Only theme and language survive a restart."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path)
        self._state = self._load()

    def _load(self) -> Preferences:
        if not self.path.exists():
            return Preferences()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            return Preferences(**{k: v for k, v in data.items() if k in PERSISTED_FIELDS})
        except (OSError, ValueError, SchemaError) as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", self.path, exc)
            return Preferences()

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(self._state.model_dump(include=PERSISTED_FIELDS)), encoding="utf-8")

    def get(self) -> Preferences:
        return self._state.model_copy()

    def update(self, changes: PreferencesUpdate) -> Preferences:
        updates = changes.model_dump(exclude_none=True)
        self._state = self._state.model_copy(update=updates)
        if PERSISTED_FIELDS & updates.keys():
            self._save()
        return self.get()

    def set_theme(self, theme: str) -> Preferences:
        return self.update(PreferencesUpdate(theme=theme))

    def set_language(self, language: str) -> Preferences:
        return self.update(PreferencesUpdate(language=language))

    def set_menu_open(self, is_open: bool) -> Preferences:
        return self.update(PreferencesUpdate(is_menu_open=is_open))
