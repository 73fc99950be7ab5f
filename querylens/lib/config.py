"""Application settings loaded from the environment.

Values come from process environment variables, optionally seeded from
`.env` and `.env.local` in the working directory.
"""

import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field


def load_env_files(base_dir: str | Path = '.') -> None:
  """Load `.env` then `.env.local` if present; existing variables win."""
  for filename in ('.env', '.env.local'):
    path = Path(base_dir) / filename
    if path.exists():
      load_dotenv(path, override=False)


class Settings(BaseModel):
  """Runtime configuration.

  Attributes:
      log_level: Logging level name, applied to querylens loggers by create_app
      catalog_cache_ttl_seconds: How long the public catalog view is reused before re-deriving
      cors_allow_origins: Origins allowed to call the API from a browser
      ws_queue_maxsize: Pending query-view updates buffered per WebSocket client
  """

  log_level: str = Field(default='INFO')
  catalog_cache_ttl_seconds: float = Field(default=300.0, ge=0)
  cors_allow_origins: list[str] = Field(default_factory=lambda: ['http://localhost:5173'])
  ws_queue_maxsize: int = Field(default=100, ge=1)

  @classmethod
  def from_env(cls) -> 'Settings':
    """Build settings from environment variables."""
    values = {}
    if os.getenv('LOG_LEVEL'):
      values['log_level'] = os.environ['LOG_LEVEL'].upper()
    if os.getenv('CATALOG_CACHE_TTL_SECONDS'):
      values['catalog_cache_ttl_seconds'] = os.environ['CATALOG_CACHE_TTL_SECONDS']
    if os.getenv('CORS_ALLOW_ORIGINS'):
      values['cors_allow_origins'] = [
        origin.strip() for origin in os.environ['CORS_ALLOW_ORIGINS'].split(',') if origin.strip()
      ]
    if os.getenv('WS_QUEUE_MAXSIZE'):
      values['ws_queue_maxsize'] = os.environ['WS_QUEUE_MAXSIZE']
    return cls(**values)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Process-wide settings, read once."""
  load_env_files()
  return Settings.from_env()
