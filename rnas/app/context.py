from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from rnas.config import settings
from rnas.config.settings import RnasConfig, load_config
from rnas.domain.models import LifecycleState
from rnas.storage.markers import MarkerStore


@dataclass
class RnasContext:
    """Per-invocation state handed to every action."""

    config: RnasConfig
    config_path: Path = field(default_factory=lambda: settings.CONFIG_PATH)
    markers: Optional[MarkerStore] = None
    _state: Optional[LifecycleState] = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.markers is None:
            self.markers = MarkerStore.for_config(self.config)

    @property
    def state(self) -> LifecycleState:
        """Lifecycle markers, read from disk on first use and then cached."""
        if self._state is None:
            self._state = self.markers.read()
        return self._state

    def refresh_state(self) -> LifecycleState:
        """Re-read the markers after this invocation changed them."""
        self._state = self.markers.read()
        return self._state

    def reload(self) -> RnasConfig:
        """Re-read the configuration file after it was changed in this invocation.

        Host identity (hostname, mount root) is carried over unchanged.
        """
        self.config = load_config(
            self.config_path,
            hostname=self.config.hostname,
            mount_root=self.config.mount_root,
        )
        self.markers = MarkerStore.for_config(self.config)
        self._state = None
        return self.config
