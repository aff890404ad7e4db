"""Runtime settings read from the environment."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .rules.dice import ROLL_POLICIES

BACKENDS = ("transformers", "openai")
DEFAULT_OPENAI_MODEL = "gpt-4-turbo"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Text generation backend selection and ability roll policies."""

    backend: str = "transformers"
    model_path: Optional[str] = None
    openai_api_key: Optional[str] = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    roll_policy: str = "d20"
    bulk_roll_policy: str = "uniform-8-20"
    log_level: str = "INFO"

    @property
    def generator_configured(self) -> bool:
        """True when the selected backend has what it needs to run.

        A missing credential only switches the wizard to manual entry.
        """

        if self.backend == "openai":
            return bool(self.openai_api_key)
        return bool(self.model_path)


def _policy(env: Mapping[str, str], key: str, default: str) -> str:
    value = env.get(key, default)
    if value not in ROLL_POLICIES:
        logger.warning("Unknown roll policy %r in %s, using %s", value, key, default)
        return default
    return value


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if env is None else env
    backend = env.get("CHARACTER_FORGE_BACKEND", "transformers").strip().lower()
    if backend not in BACKENDS:
        logger.warning("Unknown text generation backend %r, using transformers", backend)
        backend = "transformers"
    return Settings(
        backend=backend,
        model_path=env.get("CHARACTER_FORGE_MODEL_PATH") or None,
        openai_api_key=env.get("OPENAI_API_KEY") or None,
        openai_model=env.get("OPENAI_MODEL") or DEFAULT_OPENAI_MODEL,
        roll_policy=_policy(env, "CHARACTER_FORGE_ROLL_POLICY", "d20"),
        bulk_roll_policy=_policy(env, "CHARACTER_FORGE_BULK_ROLL_POLICY", "uniform-8-20"),
        log_level=env.get("CHARACTER_FORGE_LOG_LEVEL", "INFO").upper(),
    )


def configure_logging(settings: Settings) -> None:
    level = getattr(logging, settings.log_level, logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT)
