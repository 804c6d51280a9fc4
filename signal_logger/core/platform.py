"""
Platform descriptor — environment name and execution side.

The two default labels every delivery carries are computed from a
Platform value. Engines either receive one at construction or detect
a fresh one on every dispatch.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from typing import List

from signal_logger.core.config import get_settings
from signal_logger.engine.models import LogLabel

SERVER = "server"
CLIENT = "client"

DEFAULT_ENVIRONMENT = "development"


@dataclass(frozen=True)
class Platform:
    """Where the logging process runs."""
    environment: str = DEFAULT_ENVIRONMENT
    side: str = SERVER

    def default_labels(self) -> List[LogLabel]:
        return [
            LogLabel("Environment", self.environment),
            LogLabel("Side", self.side),
        ]

    @classmethod
    def detect(cls) -> "Platform":
        """Read the process environment and runtime now (no .env parsing)."""
        environment = (
            os.environ.get("ENVIRONMENT")
            or get_settings().ENVIRONMENT
            or DEFAULT_ENVIRONMENT
        )
        # Pyodide / PyScript run inside the browser
        side = CLIENT if sys.platform == "emscripten" else SERVER
        return cls(environment=environment, side=side)
