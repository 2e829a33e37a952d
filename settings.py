from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from typing import Any

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def _flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class RunSettings:
    start_time: int = 1
    end_time: int = 1
    full_output: bool = False
    seed: int | None = None
    per_agent_streams: bool = False
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.start_time < 0 or self.end_time < 0:
            raise ValueError(f"simulation times must be non-negative, got {self.start_time}..{self.end_time}")

    @property
    def is_empty(self) -> bool:
        return self.end_time < self.start_time

    @staticmethod
    def from_env() -> "RunSettings":
        seed = os.getenv("BELIEFSPREAD_SEED", "")
        return RunSettings(
            start_time=int(os.getenv("BELIEFSPREAD_START_TIME", "1")),
            end_time=int(os.getenv("BELIEFSPREAD_END_TIME", "1")),
            full_output=_flag(os.getenv("BELIEFSPREAD_FULL_OUTPUT", "false")),
            seed=int(seed) if seed.strip() else None,
            per_agent_streams=_flag(os.getenv("BELIEFSPREAD_PER_AGENT_STREAMS", "false")),
            log_level=os.getenv("BELIEFSPREAD_LOG_LEVEL", os.getenv("LOG_LEVEL", "INFO")).upper(),
        )

    def override(self, **values: Any) -> "RunSettings":
        """Copy with every non-None value applied; CLI flags left unset keep the environment's value."""
        return replace(self, **{k: v for k, v in values.items() if v is not None})


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
