"""Price id to Keygen policy resolution."""

import json
import logging
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping, Optional

from license_relay.common.config import RelaySettings
from license_relay.common.exceptions import ConfigurationError, UnmappedPrice

logger = logging.getLogger(__name__)


def _validate_table(raw: Any, source: str) -> dict[str, str]:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{source} must be a JSON object of price id -> policy id")
    table = {}
    for price_id, policy_id in raw.items():
        if not isinstance(policy_id, str) or not policy_id.strip():
            raise ConfigurationError(f"{source}: price {price_id!r} maps to an empty or non-string policy")
        table[str(price_id).strip()] = policy_id.strip()
    return table


def parse_policy_table(raw_json: str, source: str = "RELAY_PRICE_POLICY_MAP") -> dict[str, str]:
    """Parse and validate a JSON policy table."""
    try:
        raw = json.loads(raw_json)
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{source} must be valid JSON, got: {raw_json!r}") from exc
    return _validate_table(raw, source)


class PolicyResolver:
    """Read-only lookup of the policy a purchased price grants.

    There is no fallback policy: a price missing from the table is an
    error for the caller to report.
    """

    def __init__(self, table: Mapping[str, str]):
        self._table = MappingProxyType(dict(table))

    @classmethod
    def from_settings(cls, settings: RelaySettings) -> "PolicyResolver":
        table: dict[str, str] = {}
        if settings.price_policy_file:
            path = Path(settings.price_policy_file)
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as exc:
                raise ConfigurationError(f"Cannot read policy file {path}: {exc}") from exc
            table.update(parse_policy_table(text, source=str(path)))
        if settings.price_policy_map:
            table.update(parse_policy_table(settings.price_policy_map))
        if not table:
            logger.warning("Price/policy table is empty; every purchase will be rejected")
        return cls(table)

    @property
    def table(self) -> Mapping[str, str]:
        return self._table

    def __len__(self) -> int:
        return len(self._table)

    def resolve(self, price_id: str) -> Optional[str]:
        return self._table.get(price_id)

    def require(self, price_id: str) -> str:
        policy_id = self.resolve(price_id)
        if policy_id is None:
            raise UnmappedPrice(price_id)
        return policy_id
