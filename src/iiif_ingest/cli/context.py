from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from rich.console import Console

from iiif_ingest.core.config import ServiceConfig, load_config


@dataclass(slots=True)
class CLIContext:
    console: Console
    env: Mapping[str, str] = field(default_factory=lambda: os.environ)

    def load_config(self) -> ServiceConfig:
        return load_config(self.env)
