"""
Configuration for the ratecast load generator.

Two immutable values describe a run:

- LoadParams: the validated run inputs (rate, total, address).
- EngineConfig: tunables with sensible defaults, overridable through
  RATECAST_* environment variables and explicit overrides.

Hierarchy of precedence for EngineConfig (highest to lowest):
1. Overrides passed to `with_overrides()` (e.g. CLI flags)
2. Environment variables (RATECAST_*) - applied via `with_env_vars()`
3. Hardcoded defaults (in dataclass fields)

Both values are passed explicitly into every component; there is no
global mutable configuration.

Example:
    >>> from ratecast._config import EngineConfig, LoadParams
    >>> params = LoadParams.create(rate=10, total=100, address="localhost:8080")
    >>> params.url
    'http://localhost:8080/'
    >>> config = EngineConfig().with_env_vars().with_overrides({"request_timeout": 5.0})
"""

from __future__ import annotations

import math
import os
from collections.abc import Callable
from dataclasses import dataclass, field, fields, replace
from typing import Any, Self

# Highest valid TCP port
_MAX_PORT = 65535


# =============================================================================
# Exceptions
# =============================================================================


class ConfigEnvVarError(ValueError):
    """Raised when an environment variable has an invalid value."""

    def __init__(
        self,
        env_var: str,
        value: str,
        expected_type: str,
        cause: Exception | None = None,
    ):
        self.env_var = env_var
        self.value = value
        self.expected_type = expected_type
        super().__init__(f"Invalid value for {env_var}: '{value}' (expected {expected_type})")
        self.__cause__ = cause


class ConfigValidationError(ValueError):
    """Raised when a configuration value fails validation."""

    def __init__(
        self,
        field: str,
        value: Any,
        message: str,
        section: str | None = None,
    ):
        self.field = field
        self.value = value
        self.section = section
        prefix = f"[{section}] " if section else ""
        super().__init__(f"{prefix}Invalid value for '{field}': {value!r}. {message}")


class InvalidPortError(ConfigValidationError):
    """
    Raised when the port segment of an address is not an unsigned integer.

    Attributes:
        port: The offending port segment, as given.
    """

    def __init__(self, port: str):
        self.port = port
        super().__init__("address", port, f"{port} is an invalid port!", section="params")


class InvalidRateError(ConfigValidationError):
    """
    Raised when the call rate is zero.

    A zero rate never dispatches a request, so a positive budget could
    never be exhausted and the run would never end.
    """

    def __init__(self, rate: int):
        super().__init__("rate", rate, "Must be greater than 0.", section="params")


# =============================================================================
# Environment Variables
# =============================================================================


def _parse_seconds(raw: str) -> float:
    seconds = float(raw)
    if not math.isfinite(seconds):
        raise ValueError(f"{raw!r} is not a finite number of seconds")
    return seconds


def _parse_workers(raw: str) -> int | None:
    """Worker count, or `auto` to size the pool from rate and timings."""
    if raw.strip().lower() == "auto":
        return None
    return int(raw)


def _env(var_name: str, parse: Callable[[str], Any], expects: str) -> dict[str, Any]:
    """Field metadata binding a config field to a RATECAST_* variable."""
    return {"env": var_name, "parse": parse, "expects": expects}


def read_env_var(var_name: str, parse: Callable[[str], Any], expects: str) -> tuple[bool, Any]:
    """
    Read and parse an environment variable.

    Returns:
        `(False, None)` when the variable is unset or blank, otherwise
        `(True, value)`. The value itself may be None (e.g. `auto`).

    Raises:
        ConfigEnvVarError: If the value cannot be parsed.
    """
    raw_value = os.environ.get(var_name, "").strip()
    if not raw_value:
        return False, None
    try:
        return True, parse(raw_value)
    except (ValueError, TypeError) as e:
        raise ConfigEnvVarError(var_name, raw_value, expects, cause=e) from e


# =============================================================================
# Base Class
# =============================================================================


@dataclass(frozen=True)
class OverridableConfig:
    """
    Base class for immutable configuration dataclasses.

    Fields that declare an env var in their metadata (see `_env()`) are
    picked up by `.with_env_vars()`; `.with_overrides()` layers explicit
    values such as CLI flags on top.
    """

    def with_overrides(self, overrides: dict[str, Any]) -> Self:
        """
        Return a new instance with the given fields overridden.

        None values are skipped, so unset CLI flags keep the current value.

        Raises:
            ValueError: If overrides contains unknown field names.

        Example:
            >>> EngineConfig().with_overrides({"request_timeout": 5.0, "max_workers": None})
        """
        if not overrides:
            return self

        valid_fields = {f.name for f in fields(self)}
        invalid_fields = set(overrides) - valid_fields
        if invalid_fields:
            raise ValueError(
                f"Unknown config fields: {invalid_fields}. "
                f"Valid fields are: {valid_fields}"
            )

        filtered = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **filtered) if filtered else self

    def with_env_vars(self) -> Self:
        """
        Return a new instance with the RATECAST_* variables that are set applied.

        Unlike `with_overrides()`, a variable may set a field back to None
        (`RATECAST_MAX_WORKERS=auto`).

        Raises:
            ConfigEnvVarError: If an env var has an invalid value.
        """
        from_env: dict[str, Any] = {}
        for f in fields(self):
            if "env" not in f.metadata:
                continue
            is_set, value = read_env_var(f.metadata["env"], f.metadata["parse"], f.metadata["expects"])
            if is_set:
                from_env[f.name] = value
        return replace(self, **from_env) if from_env else self


# =============================================================================
# Configuration Dataclasses
# =============================================================================


@dataclass(frozen=True)
class LoadParams:
    """
    Validated inputs of a load test run.

    Always build it through `LoadParams.create()`, which validates the values
    before any dispatch happens.

    Attributes:
        rate: Fixed call rate (requests per wave, one wave per interval).
        total: Maximum number of requests (the call budget).
        address: Target address of the form `<host>:<port>`.

    Example:
        >>> params = LoadParams.create(rate=50, total=1000, address="127.0.0.1:3000")
        >>> params.port
        3000
    """

    rate: int
    total: int
    address: str

    @classmethod
    def create(cls, rate: int, total: int, address: str) -> LoadParams:
        """
        Validate the run inputs and build a LoadParams.

        Raises:
            InvalidRateError: If rate is zero.
            InvalidPortError: If the address port is not an unsigned integer.
            ConfigValidationError: If any other value is invalid.
        """
        return cls(rate=rate, total=total, address=address).validate()

    @property
    def host(self) -> str:
        return self.address.rsplit(":", 1)[0]

    @property
    def port(self) -> int:
        return int(self.address.rsplit(":", 1)[1])

    @property
    def url(self) -> str:
        """Target URL requested by every task."""
        return f"http://{self.address}/"

    def validate(self) -> Self:
        """Validate run inputs."""
        if self.rate == 0:
            raise InvalidRateError(self.rate)
        if self.rate < 0:
            raise ConfigValidationError(
                "rate", self.rate,
                "Must be greater than 0.", section="params"
            )
        if self.total < 1:
            raise ConfigValidationError(
                "total", self.total,
                "Must be >= 1.", section="params"
            )
        validate_address(self.address)
        return self


def validate_address(address: str) -> str:
    """
    Check that `address` has the form `<host>:<port>`.

    Args:
        address: The address to check.

    Returns:
        The address, unchanged.

    Raises:
        ConfigValidationError: If the host segment is missing.
        InvalidPortError: If the port is not an unsigned integer in 0..65535.
    """
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise ConfigValidationError(
            "address", address,
            "Must be of the form <host>:<port>.", section="params"
        )
    if not (port.isascii() and port.isdigit()) or int(port) > _MAX_PORT:
        raise InvalidPortError(port)
    return address


@dataclass(frozen=True)
class EngineConfig(OverridableConfig):
    """
    Tunables of the load generation engine.

    Attributes:
        request_timeout: Per-request timeout in seconds (connect and read).
            Env var: RATECAST_REQUEST_TIMEOUT

        wave_interval: Seconds between two consecutive waves.
            Env var: RATECAST_WAVE_INTERVAL

        pool_maxsize: Maximum number of pooled connections kept to the target.
            Env var: RATECAST_POOL_MAXSIZE

        max_workers: Worker threads running request tasks. None (or
            `auto` in the env var) sizes the pool so that a new wave never
            waits for a worker, see `workers_for()`.
            Env var: RATECAST_MAX_WORKERS

        drain_timeout: Seconds to wait, once dispatch stops, for in-flight
            outcomes to arrive. 0 drains only what already arrived.
            Env var: RATECAST_DRAIN_TIMEOUT

    Example:
        >>> EngineConfig().wave_interval
        1.0
        >>> EngineConfig().with_overrides({"drain_timeout": 5.0}).drain_timeout
        5.0
    """

    request_timeout: float = field(
        default=30.0, metadata=_env("RATECAST_REQUEST_TIMEOUT", _parse_seconds, "seconds"),
    )
    wave_interval: float = field(
        default=1.0, metadata=_env("RATECAST_WAVE_INTERVAL", _parse_seconds, "seconds"),
    )
    pool_maxsize: int = field(
        default=100, metadata=_env("RATECAST_POOL_MAXSIZE", int, "int"),
    )
    max_workers: int | None = field(
        default=None, metadata=_env("RATECAST_MAX_WORKERS", _parse_workers, "int or 'auto'"),
    )
    drain_timeout: float = field(
        default=0.0, metadata=_env("RATECAST_DRAIN_TIMEOUT", _parse_seconds, "seconds"),
    )

    def workers_for(self, rate: int) -> int:
        """
        Number of worker threads to use for the given rate.

        A task occupies a worker for at most about `request_timeout`, so at
        most `ceil(request_timeout / wave_interval) + 1` waves are in flight
        at once. Sizing the pool for all of them keeps every wave on its
        tick however slow the target gets.
        """
        if self.max_workers is not None:
            return self.max_workers
        waves_in_flight = math.ceil(self.request_timeout / self.wave_interval) + 1
        return max(1, rate * waves_in_flight)

    def validate(self) -> Self:
        """Validate engine configuration fields."""
        if self.request_timeout <= 0:
            raise ConfigValidationError(
                "request_timeout", self.request_timeout,
                "Must be greater than 0.", section="engine"
            )
        if self.wave_interval <= 0:
            raise ConfigValidationError(
                "wave_interval", self.wave_interval,
                "Must be greater than 0.", section="engine"
            )
        if self.pool_maxsize <= 0:
            raise ConfigValidationError(
                "pool_maxsize", self.pool_maxsize,
                "Must be greater than 0.", section="engine"
            )
        if self.max_workers is not None and self.max_workers <= 0:
            raise ConfigValidationError(
                "max_workers", self.max_workers,
                "Must be greater than 0 (or None for automatic sizing).", section="engine"
            )
        if self.drain_timeout < 0:
            raise ConfigValidationError(
                "drain_timeout", self.drain_timeout,
                "Must be >= 0.", section="engine"
            )
        return self
