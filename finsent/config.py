"""
Runtime settings - backend base URL from the environment, polling defaults
"""

import os
from dataclasses import dataclass, replace

API_URL_ENV = 'FINSENT_API_URL'
DEFAULT_API_URL = 'http://127.0.0.1:8000'


@dataclass(frozen=True)
class Settings:
    """Backend location and polling tunables"""
    base_url: str = DEFAULT_API_URL
    probe_timeout: float = 1.0     # seconds per liveness probe
    probe_interval: float = 1.5    # seconds between probe ticks
    max_attempts: int = 8          # failures until progress reads 100%
    request_timeout: float = 10.0  # chart / quote requests

    def __post_init__(self):
        object.__setattr__(self, 'base_url', self.base_url.rstrip('/'))
        if self.probe_timeout <= 0 or self.probe_interval <= 0:
            raise ValueError("probe_timeout and probe_interval must be positive")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    @classmethod
    def from_env(cls, environ=None) -> 'Settings':
        env = os.environ if environ is None else environ
        return cls(base_url=env.get(API_URL_ENV) or DEFAULT_API_URL)

    def with_overrides(self, **overrides) -> 'Settings':
        """Copy with the non-None overrides applied (CLI flags)"""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self
