"""
notamperdata SDK - Configuration

Settings come from the environment, optionally seeded from a .env file.

Environment:
  BLOCKFROST_PROJECT_ID   Blockfrost project id (required)
  CARDANO_NETWORK         Preview | Preprod | Mainnet (default Preview)
  BLOCKFROST_URL          Override the network's Blockfrost endpoint
  ANCHOR_AGENT_ADDRESS    Agent address holding funding units
  PLUTUS_BLUEPRINT        Path to plutus.json (default ./plutus.json)
  ANCHOR_VALIDATOR_TITLE  Validator title in the blueprint
  ANCHOR_LOCK_LOVELACE    Lovelace locked per anchor (default 5000000)
  ANCHOR_CONFIRM_TIMEOUT  Seconds to wait for confirmation (default 300)
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from .address import DEFAULT_VALIDATOR_TITLE, Network
from .errors import ConfigurationError

DEFAULT_LOCK_LOVELACE = 5_000_000
DEFAULT_CONFIRM_TIMEOUT = 300
DEFAULT_BLUEPRINT = "plutus.json"


def _int_setting(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "")
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")
    if value <= 0:
        raise ConfigurationError(f"{name} must be positive, got {value}")
    return value


@dataclass(frozen=True)
class AnchorConfig:
    blockfrost_project_id: str
    network: Network = Network.PREVIEW
    blockfrost_url: str = ""
    agent_address: str = ""
    blueprint_path: str = DEFAULT_BLUEPRINT
    validator_title: str = DEFAULT_VALIDATOR_TITLE
    lock_lovelace: int = DEFAULT_LOCK_LOVELACE
    confirm_timeout: int = DEFAULT_CONFIRM_TIMEOUT

    @property
    def api_url(self) -> str:
        return self.blockfrost_url or self.network.blockfrost_url

    def require_agent_address(self) -> str:
        if not self.agent_address:
            raise ConfigurationError("ANCHOR_AGENT_ADDRESS environment variable is required")
        return self.agent_address

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None,
                 dotenv_path: Optional[str] = None) -> "AnchorConfig":
        """
        Build config from environment variables.

        Args:
            env: Mapping to read instead of os.environ (no .env loading then)
            dotenv_path: Explicit .env file; default searches upwards from cwd

        Raises:
            ConfigurationError: required variable missing or invalid
        """
        if env is None:
            load_dotenv(dotenv_path)
            env = os.environ

        project_id = env.get("BLOCKFROST_PROJECT_ID", "")
        if not project_id:
            raise ConfigurationError("BLOCKFROST_PROJECT_ID environment variable is required")

        return cls(
            blockfrost_project_id=project_id,
            network=Network.parse(env.get("CARDANO_NETWORK") or "Preview"),
            blockfrost_url=env.get("BLOCKFROST_URL", ""),
            agent_address=env.get("ANCHOR_AGENT_ADDRESS", ""),
            blueprint_path=env.get("PLUTUS_BLUEPRINT") or DEFAULT_BLUEPRINT,
            validator_title=env.get("ANCHOR_VALIDATOR_TITLE") or DEFAULT_VALIDATOR_TITLE,
            lock_lovelace=_int_setting(env, "ANCHOR_LOCK_LOVELACE", DEFAULT_LOCK_LOVELACE),
            confirm_timeout=_int_setting(env, "ANCHOR_CONFIRM_TIMEOUT", DEFAULT_CONFIRM_TIMEOUT),
        )
