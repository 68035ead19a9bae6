"""Facilitator service configuration.

Values come from ``X402_*`` environment variables, optionally loaded from a
``.env`` file first::

    X402_FACILITATOR_ADDRESS=0x...
    X402_HOME_NETWORK=push-chain
    X402_RPC_URL_BASE_SEPOLIA=https://sepolia.base.org
    X402_BEST_EFFORT_CONFIRMATION=false
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Mapping

from dotenv import load_dotenv

from .errors import UnsupportedNetworkError
from .mechanisms.evm.constants import DEFAULT_SETTLEMENT_GAS
from .mechanisms.evm.utils import normalize_address
from .networks import get_chain_id
from .schemas import X402_VERSION

ENV_PREFIX = "X402_"
RPC_URL_PREFIX = f"{ENV_PREFIX}RPC_URL_"

DEFAULT_RPC_URLS: dict[str, str] = {
    "push-chain": "https://evm.rpc-testnet-donut-node1.push.org/",
    "ethereum-sepolia": "https://ethereum-sepolia-rpc.publicnode.com",
    "base-sepolia": "https://sepolia.base.org",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


class ConfigError(ValueError):
    """Configuration value is missing or invalid."""


@dataclass
class FacilitatorConfig:
    """Configuration for the facilitator service."""

    facilitator_address: str
    admin_address: str | None = None
    x402_version: int = X402_VERSION
    home_network: str = "push-chain"
    rpc_urls: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_RPC_URLS))
    rpc_timeout_seconds: float = 10.0
    rpc_max_retries: int = 2
    rpc_backoff_seconds: float = 0.5
    best_effort_confirmation: bool = False
    confirm_home_transfers: bool = True
    estimated_settlement_gas: int = DEFAULT_SETTLEMENT_GAS
    supported_tokens: list[str] = field(default_factory=list)
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3001

    def __post_init__(self) -> None:
        try:
            self.facilitator_address = normalize_address(self.facilitator_address)
            if self.admin_address:
                self.admin_address = normalize_address(self.admin_address)
            self.supported_tokens = [normalize_address(t) for t in self.supported_tokens]
        except ValueError as e:
            raise ConfigError(str(e)) from e

        for network in [self.home_network, *self.rpc_urls]:
            try:
                get_chain_id(network)
            except UnsupportedNetworkError as e:
                raise ConfigError(e.message) from e

        if self.rpc_timeout_seconds <= 0:
            raise ConfigError("rpc_timeout_seconds must be positive")
        if self.rpc_max_retries < 0:
            raise ConfigError("rpc_max_retries must not be negative")

    @property
    def registry_admin(self) -> str:
        return self.admin_address or self.facilitator_address


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigError(f"{name} must be a boolean, got {raw!r}")


def _parse(name: str, raw: str, kind: str) -> Any:
    # Field types are annotation strings under postponed evaluation.
    if kind == "bool":
        return _parse_bool(name, raw)
    if kind == "int":
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"{name} must be an integer, got {raw!r}") from None
    if kind == "float":
        try:
            return float(raw)
        except ValueError:
            raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if kind == "list[str]":
        return [item.strip() for item in raw.split(",") if item.strip()]
    return raw


def _rpc_urls_from_env(environ: Mapping[str, str]) -> dict[str, str]:
    urls = dict(DEFAULT_RPC_URLS)
    for key, value in environ.items():
        if key.startswith(RPC_URL_PREFIX) and value:
            network = key[len(RPC_URL_PREFIX):].lower().replace("_", "-")
            urls[network] = value
    return urls


def load_config(
    env_file: str | None = None,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> FacilitatorConfig:
    """Build a ``FacilitatorConfig`` from the environment.

    Args:
        env_file: Optional ``.env`` path loaded before reading variables.
        environ: Variables to read instead of ``os.environ``.
        **overrides: Field values that take precedence over the environment.

    Raises:
        ConfigError: If a variable is missing or cannot be parsed.
    """
    if environ is None:
        load_dotenv(env_file)
        environ = os.environ

    values: dict[str, Any] = {"rpc_urls": _rpc_urls_from_env(environ)}
    for f in fields(FacilitatorConfig):
        if f.name == "rpc_urls":
            continue
        name = f"{ENV_PREFIX}{f.name.upper()}"
        raw = environ.get(name)
        if raw is None or raw == "":
            continue
        values[f.name] = _parse(name, raw, f.type)
    values.update(overrides)

    if not values.get("facilitator_address"):
        raise ConfigError(f"{ENV_PREFIX}FACILITATOR_ADDRESS is required")
    return FacilitatorConfig(**values)


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the service entry point."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
