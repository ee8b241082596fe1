"""
CLI configuration.

Operator commands talk to Supabase directly with the service-role key.
Values come from the process environment, filled in from
``~/.tunedup/.env`` or a ``.env`` in the working directory.
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import find_dotenv, load_dotenv

USER_ENV_FILE = Path.home() / ".tunedup" / ".env"

PLAN_CODES = ["FREE", "PLUS", "PRO", "ULTRA", "ADMIN"]
PROMOTION_PLANS = ["PLUS", "PRO", "ULTRA"]


class ConfigError(Exception):
    def __init__(self, missing: List[str]):
        self.missing = missing
        super().__init__(f"Missing configuration: {', '.join(missing)}")


def load_environment() -> Optional[Path]:
    """Load the first .env found; existing environment variables win."""
    if USER_ENV_FILE.exists():
        load_dotenv(USER_ENV_FILE)
        return USER_ENV_FILE
    local = find_dotenv(usecwd=True)
    if local:
        load_dotenv(local)
        return Path(local)
    return None


@dataclass
class Config:
    supabase_url: str = ""
    service_role_key: str = ""
    environment: str = "dev"
    env_file: Optional[Path] = field(default=None, compare=False)

    @classmethod
    def load(cls) -> "Config":
        env_file = load_environment()
        return cls(
            supabase_url=os.environ.get("SUPABASE_URL", ""),
            service_role_key=os.environ.get("SUPABASE_SERVICE_ROLE_KEY", ""),
            environment=os.environ.get("ENVIRONMENT", "dev"),
            env_file=env_file,
        )

    def validate(self) -> List[str]:
        """Names of required settings that are empty."""
        required = {
            "SUPABASE_URL": self.supabase_url,
            "SUPABASE_SERVICE_ROLE_KEY": self.service_role_key,
        }
        return [name for name, value in required.items() if not value]


_config: Optional[Config] = None


def get_config() -> Config:
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def get_supabase_client():
    """Service-role Supabase client; raises ConfigError when unconfigured."""
    from supabase import create_client

    config = get_config()
    missing = config.validate()
    if missing:
        raise ConfigError(missing)
    return create_client(config.supabase_url, config.service_role_key)
