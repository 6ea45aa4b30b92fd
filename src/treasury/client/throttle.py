"""Client-side regeneration throttle.

Interactive clients (dashboard refresh, the ``regenerate --throttle``
command) call regeneration at most once per interval per owner and company.
The last run time of each key lives in a local JSON file, so every client
keeps its own clock and nothing is shared with other machines.
"""

import json
import os
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

from treasury.database.factories import default_data_dir
from treasury.domain.clock import Clock, SystemClock
from treasury.logging_config import get_logger

logger = get_logger("throttle")

REGENERATION_INTERVAL = timedelta(hours=1)


def default_state_path() -> Path:
    """Return the state file path from TREASURY_STATE_PATH or ~/.treasury."""
    env_path = os.environ.get("TREASURY_STATE_PATH")
    if env_path:
        return Path(env_path)
    return default_data_dir() / "client_state.json"


def cache_key(owner_id: Optional[str] = None, company_id: Optional[str] = None) -> str:
    """Return the throttle key for a regeneration scope."""
    return f"regenerate:{owner_id or 'all'}:{company_id or 'all'}"


class RegenerationThrottle:
    """Rate limiter for client-triggered regeneration."""

    def __init__(
        self,
        state_path: Optional[Path | str] = None,
        interval: timedelta = REGENERATION_INTERVAL,
        clock: Optional[Clock] = None,
    ):
        """Initialize throttle.

        Args:
            state_path: JSON state file (defaults to default_state_path())
            interval: Minimum time between runs of one key
            clock: Clock supplying the current time
        """
        self.state_path = Path(state_path) if state_path else default_state_path()
        self.interval = interval
        self.clock = clock or SystemClock()

    def _load(self) -> dict[str, str]:
        if not self.state_path.exists():
            return {}
        try:
            state = json.loads(self.state_path.read_text())
        except json.JSONDecodeError:
            logger.warning("Ignoring unreadable throttle state at %s", self.state_path)
            return {}
        return state if isinstance(state, dict) else {}

    def _save(self, state: dict[str, str]) -> None:
        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        self.state_path.write_text(json.dumps(state, indent=2, sort_keys=True))

    def last_run(self, key: str) -> Optional[datetime]:
        """Return when ``key`` last ran, or None if never."""
        value = self._load().get(key)
        if value is None:
            return None
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None

    def should_run(self, key: str, force: bool = False) -> bool:
        """Check whether ``key`` is due to run.

        Args:
            key: Throttle key (see cache_key)
            force: Bypass the interval

        Returns:
            True when forced, never run, or last run older than the interval
        """
        if force:
            return True
        last = self.last_run(key)
        if last is None:
            return True
        return self.clock.now() - last >= self.interval

    def mark_run(self, key: str) -> None:
        """Record that ``key`` ran now."""
        state = self._load()
        state[key] = self.clock.now().isoformat()
        self._save(state)
        logger.debug("Marked %s at %s", key, state[key])
