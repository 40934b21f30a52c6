"""
Ledger configuration (``pos_ledger.config``).

Responsibility
--------------
Load the packaged ``defaults.yaml``, overlay an optional user YAML file and
environment overrides, and parse the result into a frozen ``LedgerConfig``.

Resolution order (later wins):

1. ``pos_ledger/defaults.yaml``
2. the file passed to ``load_config(path)``, or named by ``POS_LEDGER_CONFIG``
3. ``POS_LEDGER_DATABASE_URL`` / ``DATABASE_URL`` for the database URL

Failure modes
-------------
* Missing overlay file, malformed YAML, missing keys and bad values all raise
  ``ConfigurationError`` naming the offending key.
"""

from __future__ import annotations

import hashlib
import json
import os
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Mapping

import yaml

from pos_ledger.domain.dtos import AccountRole
from pos_ledger.exceptions import ConfigurationError
from pos_ledger.models.account import AccountCategory

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

CONFIG_ENV_VAR = "POS_LEDGER_CONFIG"
DATABASE_ENV_VARS = ("POS_LEDGER_DATABASE_URL", "DATABASE_URL")


@dataclass(frozen=True)
class SeedType:
    name: str
    category: AccountCategory
    sub_types: tuple[str, ...]


@dataclass(frozen=True)
class SeedAccount:
    code: str
    name: str
    type_name: str
    sub_type_name: str
    description: str | None = None


@dataclass(frozen=True)
class ChartSeed:
    """Starter chart written by AccountRegistry.initialize()."""

    types: tuple[SeedType, ...]
    accounts: tuple[SeedAccount, ...]


@dataclass(frozen=True)
class LedgerConfig:
    """Everything the ledger services read from configuration."""

    database_url: str
    echo: bool = False
    balance_tolerance: Decimal = Decimal("0.01")
    cogs_cost_ratio: Decimal = Decimal("0.60")
    number_width: int = 5
    document_prefixes: Mapping[str, str] = field(default_factory=dict)
    retry_attempts: int = 3
    retry_backoff_seconds: float = 0.05
    outbox_max_attempts: int = 5
    log_level: str = "INFO"
    well_known_accounts: Mapping[AccountRole, str] = field(default_factory=dict)
    chart: ChartSeed = field(default_factory=lambda: ChartSeed(types=(), accounts=()))
    checksum: str = ""

    def prefix_for(self, sequence_name: str) -> str:
        try:
            return self.document_prefixes[sequence_name]
        except KeyError:
            raise ConfigurationError(
                f"sequences.prefixes.{sequence_name}", "no prefix configured"
            ) from None


def load_yaml_file(path: Path) -> dict[str, Any]:
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError as exc:
        raise ConfigurationError(str(path), "file not found") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(str(path), f"invalid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def merge(base: dict[str, Any], overlay: Mapping[str, Any]) -> dict[str, Any]:
    """Recursive mapping merge; non-mapping values (lists included) replace."""
    out = dict(base)
    for key, value in overlay.items():
        if isinstance(value, Mapping) and isinstance(out.get(key), Mapping):
            out[key] = merge(dict(out[key]), value)
        else:
            out[key] = value
    return out


def compute_checksum(data: Mapping[str, Any]) -> str:
    """Deterministic SHA-256 of the merged configuration."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _get(data: Mapping[str, Any], dotted: str) -> Any:
    node: Any = data
    for part in dotted.split("."):
        if not isinstance(node, Mapping) or part not in node:
            raise ConfigurationError(dotted, "missing")
        node = node[part]
    return node


def _decimal(data: Mapping[str, Any], key: str) -> Decimal:
    raw = _get(data, key)
    try:
        value = Decimal(str(raw))
    except InvalidOperation:
        raise ConfigurationError(key, f"not a decimal: {raw!r}") from None
    if value < 0:
        raise ConfigurationError(key, "must not be negative")
    return value


def _positive_int(data: Mapping[str, Any], key: str) -> int:
    raw = _get(data, key)
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 1:
        raise ConfigurationError(key, f"must be a positive integer, got {raw!r}")
    return raw


def parse_well_known(raw: Any) -> dict[AccountRole, str]:
    if not isinstance(raw, Mapping):
        raise ConfigurationError("well_known_accounts", "must be a mapping")
    table: dict[AccountRole, str] = {}
    for role in AccountRole:
        code = raw.get(role.value)
        if code is None:
            raise ConfigurationError(f"well_known_accounts.{role.value}", "missing")
        table[role] = str(code)
    unknown = set(raw) - {role.value for role in AccountRole}
    if unknown:
        raise ConfigurationError("well_known_accounts", f"unknown roles: {sorted(unknown)}")
    return table


def parse_chart(raw: Any) -> ChartSeed:
    if not isinstance(raw, Mapping):
        raise ConfigurationError("chart", "must be a mapping")
    types = []
    for i, entry in enumerate(raw.get("types") or []):
        try:
            types.append(
                SeedType(
                    name=entry["name"],
                    category=AccountCategory(entry["category"]),
                    sub_types=tuple(entry.get("sub_types") or ()),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"chart.types[{i}]", str(exc)) from exc

    known_sub_types = {(t.name, s) for t in types for s in t.sub_types}
    accounts = []
    for i, entry in enumerate(raw.get("accounts") or []):
        try:
            seed = SeedAccount(
                code=str(entry["code"]),
                name=entry["name"],
                type_name=entry["type"],
                sub_type_name=entry["sub_type"],
                description=entry.get("description"),
            )
        except (KeyError, TypeError) as exc:
            raise ConfigurationError(f"chart.accounts[{i}]", f"missing {exc}") from exc
        if (seed.type_name, seed.sub_type_name) not in known_sub_types:
            raise ConfigurationError(
                f"chart.accounts[{i}]",
                f"sub-type {seed.sub_type_name!r} is not declared under {seed.type_name!r}",
            )
        accounts.append(seed)

    categories = [t.category for t in types]
    if len(set(categories)) != len(categories):
        raise ConfigurationError("chart.types", "each category may appear only once")
    return ChartSeed(types=tuple(types), accounts=tuple(accounts))


def parse_config(data: Mapping[str, Any]) -> LedgerConfig:
    prefixes = _get(data, "sequences.prefixes")
    if not isinstance(prefixes, Mapping):
        raise ConfigurationError("sequences.prefixes", "must be a mapping")
    backoff = _get(data, "retry.backoff_seconds")
    if isinstance(backoff, bool) or not isinstance(backoff, (int, float)) or backoff < 0:
        raise ConfigurationError("retry.backoff_seconds", f"must be a non-negative number, got {backoff!r}")

    return LedgerConfig(
        database_url=str(_get(data, "database.url")),
        echo=bool(data.get("database", {}).get("echo", False)),
        balance_tolerance=_decimal(data, "posting.balance_tolerance"),
        cogs_cost_ratio=_decimal(data, "posting.cogs_cost_ratio"),
        number_width=_positive_int(data, "sequences.number_width"),
        document_prefixes={str(k): str(v) for k, v in prefixes.items()},
        retry_attempts=_positive_int(data, "retry.attempts"),
        retry_backoff_seconds=float(backoff),
        outbox_max_attempts=_positive_int(data, "outbox.max_attempts"),
        log_level=str(data.get("logging", {}).get("level", "INFO")).upper(),
        well_known_accounts=parse_well_known(_get(data, "well_known_accounts")),
        chart=parse_chart(_get(data, "chart")),
        checksum=compute_checksum(data),
    )


def load_config(
    path: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> LedgerConfig:
    """
    Build the active LedgerConfig.

    Args:
        path: Overlay YAML file.  Defaults to ``$POS_LEDGER_CONFIG`` if set.
        environ: Environment mapping (defaults to ``os.environ``).
    """
    env = os.environ if environ is None else environ
    data = load_yaml_file(DEFAULTS_PATH)

    overlay_path = path or env.get(CONFIG_ENV_VAR)
    if overlay_path:
        data = merge(data, load_yaml_file(Path(overlay_path)))

    for var in DATABASE_ENV_VARS:
        if env.get(var):
            data = merge(data, {"database": {"url": env[var]}})
            break

    return parse_config(data)
