"""Registry of facility databases and the physical sites behind them."""
from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError, NoSuchModuleError

from workshop_sync.core.config import Settings
from workshop_sync.core.errors import ConfigurationError
from workshop_sync.core.models import Facility
from workshop_sync.core.utils import unique

logger = logging.getLogger(__name__)

FALLBACK_FACILITY = Facility("NIEMI BIL", "noreply@niemibil.se", "0920-23 00 88")

FACILITIES: Dict[str, Facility] = {
    "NIE2V": Facility("Spantgatan", "verkstad.spantgatan@niemibil.se", "0920-830 60"),
    "NIEM3": Facility("Umeå", "verkstad.umea@niemibil.se", "090-428 88"),
    "NIEM4": Facility("Skellefteå", "verkstad.skelleftea@niemibil.se", "0910-548 50"),
    "NIEM5": Facility("Kiruna", "kiruna@niemibil.se", "0980-642 00"),
    "NIEM6": Facility("Uppsala", "verkstad.uppsala@niemibil.se", "018-69 68 68"),
}


class EnvironmentRegistry:
    """Maps environment ids to SQLAlchemy engines, created on first use."""

    def __init__(
        self,
        connection_strings: Mapping[str, str],
        environments: Optional[Sequence[str]] = None,
        facilities: Optional[Mapping[str, Facility]] = None,
    ) -> None:
        urls = {env.upper(): url for env, url in connection_strings.items()}
        order = [env.upper() for env in environments] if environments is not None else list(urls)
        order = unique(order)

        missing = [env for env in order if not urls.get(env)]
        if missing:
            raise ConfigurationError(
                "Missing connection string for environment(s): " + ", ".join(missing)
            )

        self._environments: Tuple[str, ...] = tuple(order)
        self._urls = {env: urls[env] for env in order}
        self._facilities = dict(FACILITIES if facilities is None else facilities)
        self._engines: Dict[str, Engine] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "EnvironmentRegistry":
        return cls(settings.connection_strings, environments=settings.environments)

    def available_environments(self) -> Tuple[str, ...]:
        return self._environments

    def _known(self, environment: str) -> str:
        key = (environment or "").strip().upper()
        if key not in self._urls:
            raise ConfigurationError(f"Unknown environment: {environment!r}")
        return key

    def connection_for(self, environment: str) -> Engine:
        """Return the engine for ``environment``; callers open connections from it."""

        key = self._known(environment)
        with self._lock:
            engine = self._engines.get(key)
            if engine is None:
                engine = self._create_engine(key)
                self._engines[key] = engine
        return engine

    def _create_engine(self, environment: str) -> Engine:
        url = self._urls[environment]
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        try:
            engine = create_engine(url, connect_args=connect_args)
        except (ArgumentError, NoSuchModuleError) as exc:
            raise ConfigurationError(
                f"Invalid connection string for environment {environment}: {exc}"
            ) from exc
        logger.debug("Created engine for environment %s (%s)", environment, engine.url.get_backend_name())
        return engine

    def resolve_targets(
        self,
        environment: Optional[str] = None,
        environments: Optional[Iterable[str]] = None,
    ) -> Tuple[str, ...]:
        """Pick the environments for one call.

        A single explicit environment wins over an explicit list, which wins
        over every available environment. The result is never empty.
        """

        requested = [env for env in (environments or []) if env and env.strip()]
        if environment and environment.strip():
            targets = [self._known(environment)]
        elif requested:
            targets = unique(self._known(env) for env in requested)
        else:
            targets = list(self._environments)

        if not targets:
            raise ConfigurationError("No target environments could be resolved")
        return tuple(targets)

    def facility_for(self, environment: Optional[str]) -> Facility:
        return self._facilities.get((environment or "").upper(), FALLBACK_FACILITY)

    def dispose(self) -> None:
        with self._lock:
            for engine in self._engines.values():
                engine.dispose()
            self._engines.clear()
