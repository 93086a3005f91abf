# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Reporter configuration from files, the environment and explicit overrides."""

from __future__ import annotations

import os
import socket
import tomllib
from collections.abc import Mapping, MutableMapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, cast

import yaml

from ._logging import StructuredLogger, get_logger
from .errors import ConfigError
from .report._json import DEFAULT_DECIMAL_PLACES, ReportHeader
from .stats import TICK_INTERVAL_SECONDS

ENV_APP = "PULSEMETRICS_APP"
ENV_ENVIRONMENT = "PULSEMETRICS_ENV"
ENV_SERVER = "PULSEMETRICS_SERVER"
ENV_REPORT_INTERVAL = "PULSEMETRICS_REPORT_INTERVAL"
ENV_OUTPUT_PATH = "PULSEMETRICS_OUTPUT_PATH"

DEFAULT_REPORT_INTERVAL_SECONDS = 60.0

logger: StructuredLogger = get_logger(__name__, context={"component": "config"})

__all__ = [
    "DEFAULT_REPORT_INTERVAL_SECONDS",
    "ReporterConfig",
    "load_config",
]


@dataclass(frozen=True, slots=True)
class ReporterConfig:
    """Resolved settings for :class:`~pulsemetrics.report.MetricsReporter`.

    Attributes:
        app: Application name written to every report header.
        env: Deployment environment written to every report header.
        server: Host or instance name written to every report header.
        tick_interval_seconds: Cadence of decayed-rate ticks.
        report_interval_seconds: Cadence of collection and reporting.
        decimal_places: Precision of real-valued report fields.
        include_empty: Report metrics with nothing observed in the window.
        output_path: JSON-lines file receiving reports, if any.
    """

    app: str = "unknown"
    env: str = "dev"
    server: str = ""
    tick_interval_seconds: float = TICK_INTERVAL_SECONDS
    report_interval_seconds: float = DEFAULT_REPORT_INTERVAL_SECONDS
    decimal_places: int = DEFAULT_DECIMAL_PLACES
    include_empty: bool = False
    output_path: Path | None = None

    def __post_init__(self) -> None:
        if not self.server:
            object.__setattr__(self, "server", socket.gethostname())
        if self.tick_interval_seconds <= 0:
            msg = "tick_interval_seconds must be positive"
            raise ConfigError(msg)
        if self.report_interval_seconds <= 0:
            msg = "report_interval_seconds must be positive"
            raise ConfigError(msg)
        if self.decimal_places < 0:
            msg = "decimal_places must not be negative"
            raise ConfigError(msg)

    def header(self) -> ReportHeader:
        return ReportHeader(app=self.app, env=self.env, server=self.server)


def load_config(
    source: Path | str | Mapping[str, Any] | None = None,
    overrides: object | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> ReporterConfig:
    """Load and validate reporter configuration.

    Parameters
    ----------
    source:
        A ``.toml``, ``.yaml`` or ``.yml`` file, an in-memory mapping, or
        ``None`` for defaults only.
    overrides:
        Mapping or attribute object whose non-``None`` values take precedence
        over everything else. Keys mirror ``ReporterConfig``'s field names.
    env:
        Optional environment mapping. Defaults to :data:`os.environ`.

    Raises
    ------
    ConfigError
        If the file format is unsupported or a value has the wrong type.
    FileNotFoundError
        If ``source`` names a file that does not exist.
    """

    env_map = dict(os.environ if env is None else env)

    if source is None:
        raw: dict[str, object] = {}
    elif isinstance(source, Mapping):
        raw = dict(cast(Mapping[str, object], source))
    else:
        raw = _load_config_file(Path(source).expanduser())

    config = _normalise_config(raw)
    config = _apply_environment_overrides(config=config, env=env_map)
    config = _apply_overrides(config=config, overrides=overrides)

    resolved = _build_config(config)
    logger.debug(
        "Reporter configuration loaded.",
        event="config.loaded",
        context={"app": resolved.app, "env": resolved.env, "server": resolved.server},
    )
    return resolved


def _load_config_file(path: Path) -> dict[str, object]:
    if not path.exists():
        msg = f"Configuration file not found: {path}"
        raise FileNotFoundError(msg)

    suffix = path.suffix.lower()
    data: object
    if suffix == ".toml":
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    elif suffix in {".yaml", ".yml"}:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    else:
        msg = f"Unsupported configuration format: {path.suffix}"
        raise ConfigError(msg)

    if not isinstance(data, MutableMapping):
        msg = "Configuration file must contain a mapping at the root."
        raise ConfigError(msg)

    mapping = cast(MutableMapping[object, object], data)
    typed: dict[str, object] = {}
    for key, value in mapping.items():
        if not isinstance(key, str):
            msg = f"Configuration keys must be strings (got {key!r})."
            raise ConfigError(msg)
        typed[key] = value
    return typed


def _normalise_config(raw: Mapping[str, object]) -> dict[str, object]:
    config: dict[str, object] = {
        "app": raw.get("app"),
        "env": raw.get("env") or raw.get("environment"),
        "server": raw.get("server"),
        "tick_interval_seconds": raw.get("tick_interval_seconds"),
        "report_interval_seconds": raw.get("report_interval_seconds"),
        "decimal_places": raw.get("decimal_places"),
        "include_empty": raw.get("include_empty"),
        "output_path": raw.get("output_path"),
    }

    header_obj = raw.get("header")
    if isinstance(header_obj, Mapping):
        header = cast(Mapping[str, object], header_obj)
        for key in ("app", "env", "server"):
            if config[key] is None and header.get(key) is not None:
                config[key] = header.get(key)

    report_obj = raw.get("report")
    if isinstance(report_obj, Mapping):
        report = cast(Mapping[str, object], report_obj)
        nested = {
            "report_interval_seconds": report.get("interval"),
            "tick_interval_seconds": report.get("tick_interval"),
            "decimal_places": report.get("decimal_places"),
            "include_empty": report.get("include_empty"),
            "output_path": report.get("output_path"),
        }
        for key, value in nested.items():
            if config[key] is None and value is not None:
                config[key] = value

    return config


def _apply_environment_overrides(
    *, config: dict[str, object], env: Mapping[str, str]
) -> dict[str, object]:
    if ENV_APP in env:
        config["app"] = env[ENV_APP]
    if ENV_ENVIRONMENT in env:
        config["env"] = env[ENV_ENVIRONMENT]
    if ENV_SERVER in env:
        config["server"] = env[ENV_SERVER]
    if ENV_REPORT_INTERVAL in env:
        config["report_interval_seconds"] = env[ENV_REPORT_INTERVAL]
    if ENV_OUTPUT_PATH in env:
        config["output_path"] = env[ENV_OUTPUT_PATH]
    return config


def _apply_overrides(
    *, config: dict[str, object], overrides: object | None
) -> dict[str, object]:
    if overrides is None:
        return config

    materialised: dict[str, object]
    if isinstance(overrides, Mapping):
        materialised = dict(cast(Mapping[str, object], overrides))
    elif hasattr(overrides, "__dict__"):
        materialised = {key: getattr(overrides, key) for key in vars(overrides)}
    else:
        msg = "Overrides must be a mapping or support attribute access."
        raise TypeError(msg)

    for key, value in materialised.items():
        if value is None or key not in config:
            continue
        config[key] = value
    return config


def _build_config(config: Mapping[str, object]) -> ReporterConfig:
    output_obj = config.get("output_path")
    output_path = None if output_obj is None else Path(str(output_obj)).expanduser()
    return ReporterConfig(
        app=_coerce_str(config.get("app"), "app") or "unknown",
        env=_coerce_str(config.get("env"), "env") or "dev",
        server=_coerce_str(config.get("server"), "server") or "",
        tick_interval_seconds=_coerce_float(
            config.get("tick_interval_seconds"),
            "tick_interval_seconds",
            TICK_INTERVAL_SECONDS,
        ),
        report_interval_seconds=_coerce_float(
            config.get("report_interval_seconds"),
            "report_interval_seconds",
            DEFAULT_REPORT_INTERVAL_SECONDS,
        ),
        decimal_places=_coerce_int(
            config.get("decimal_places"), "decimal_places", DEFAULT_DECIMAL_PLACES
        ),
        include_empty=_coerce_bool(config.get("include_empty"), "include_empty"),
        output_path=output_path,
    )


def _coerce_str(value: object, field_name: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return value.strip() or None
    msg = f"`{field_name}` must be a string (got {value!r})."
    raise ConfigError(msg)


def _coerce_float(value: object, field_name: str, default: float) -> float:
    if value is None:
        return default
    if isinstance(value, bool):
        msg = f"`{field_name}` must be a number (got {value!r})."
        raise ConfigError(msg)
    if isinstance(value, (int, float, str)):
        try:
            return float(value)
        except ValueError as exc:
            msg = f"`{field_name}` must be a number (got {value!r})."
            raise ConfigError(msg) from exc
    msg = f"`{field_name}` must be a number (got {value!r})."
    raise ConfigError(msg)


def _coerce_int(value: object, field_name: str, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool):
        msg = f"`{field_name}` must be an integer (got {value!r})."
        raise ConfigError(msg)
    if isinstance(value, (int, str)):
        try:
            return int(value)
        except ValueError as exc:
            msg = f"`{field_name}` must be an integer (got {value!r})."
            raise ConfigError(msg) from exc
    msg = f"`{field_name}` must be an integer (got {value!r})."
    raise ConfigError(msg)


def _coerce_bool(value: object, field_name: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.lower() in {"1", "true", "yes", "on"}:
        return True
    if isinstance(value, str) and value.lower() in {"0", "false", "no", "off"}:
        return False
    msg = f"`{field_name}` must be a boolean (got {value!r})."
    raise ConfigError(msg)
