"""Typed, layered configuration loader with precedence handling.

Precedence (later wins):
    embedded defaults < defaults.ini < SIGURA_<SECTION>__<KEY> env vars
    < machine INI (path from SIGURA_CONFIG) < explicit overrides
"""
from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, fields
from pathlib import Path
from threading import RLock
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

# --------------------------------------------------------------------------- #
#  Paths & default definitions
# --------------------------------------------------------------------------- #

CONFIG_DIR = Path(__file__).resolve().parent
DEFAULTS_INI = CONFIG_DIR / "defaults.ini"
ENV_PREFIX = "SIGURA_"
MACHINE_INI_ENV = "SIGURA_CONFIG"


_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "Storage": {
        "root": "./var/artifacts",
        "database": "./var/sigura.db",
    },
    "Renderer": {
        "binary": "",
        "instances": "1",
        "job_timeout_seconds": "30",
        "probe_timeout_seconds": "10",
        "queue_limit": "16",
        "queue_wait_seconds": "60",
        "required": "false",
    },
    "Intake": {
        "max_file_size_bytes": "10485760",
    },
    "Signature": {
        "key_file": "./var/signature.keys",
        "target_width": "150",
        "margin": "36",
        "gap": "18",
        "embed_labels": "true",
        "label_font_size": "7",
    },
    "Workflow": {
        "chain_policy_file": "",
        "lock_timeout_seconds": "30",
    },
}


# --------------------------------------------------------------------------- #
#  Datamodels
# --------------------------------------------------------------------------- #

@dataclass
class StorageConfig:
    root: Path
    database: Path


@dataclass
class RendererConfig:
    binary: str = ""
    instances: int = 1
    job_timeout_seconds: float = 30.0
    probe_timeout_seconds: float = 10.0
    queue_limit: int = 16
    queue_wait_seconds: float = 60.0
    required: bool = False


@dataclass
class IntakeConfig:
    max_file_size_bytes: int = 10 * 1024 * 1024


@dataclass
class SignatureConfig:
    key_file: Path
    target_width: float = 150.0
    margin: float = 36.0
    gap: float = 18.0
    embed_labels: bool = True
    label_font_size: int = 7


@dataclass
class WorkflowConfig:
    chain_policy_file: str = ""
    lock_timeout_seconds: float = 30.0


@dataclass
class AppConfig:
    storage: StorageConfig
    renderer: RendererConfig
    intake: IntakeConfig
    signature: SignatureConfig
    workflow: WorkflowConfig


# --------------------------------------------------------------------------- #
#  Helpers
# --------------------------------------------------------------------------- #

def _cp_to_dict(cp: configparser.ConfigParser) -> Dict[str, Dict[str, Any]]:
    data: Dict[str, Dict[str, Any]] = {}
    for section in cp.sections():
        data[section] = {k: v for k, v in cp.items(section)}
    return data


def _read_ini(path: Path) -> Dict[str, Dict[str, Any]]:
    cp = configparser.ConfigParser()
    cp.read(path, encoding="utf-8")
    return _cp_to_dict(cp)


def _apply(target: Dict[str, Dict[str, Any]], source: Mapping[str, Mapping[str, Any]],
           layer: str, origin: str,
           sources: Dict[Tuple[str, str], Dict[str, str]]) -> None:
    for section, items in source.items():
        sec = target.setdefault(section, {})
        for key, value in items.items():
            sec[key] = value
            sources[(section, key)] = {"layer": layer, "source": origin}


def _cast(value: Any, typ: Any) -> Any:
    # field.type is a string under `from __future__ import annotations`
    name = typ if isinstance(typ, str) else getattr(typ, "__name__", str(typ))
    if name == "Path":
        return Path(str(value)).expanduser()
    if name == "bool":
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in {"1", "true", "yes", "on"}
    if name == "int":
        return int(value)
    if name == "float":
        return float(value)
    return str(value)


def _build_dataclass(cls: type, data: Dict[str, Any]) -> Any:
    kwargs = {}
    for field in fields(cls):
        if field.name in data:
            kwargs[field.name] = _cast(data[field.name], field.type)
    return cls(**kwargs)


def _env_overlays(environ: Mapping[str, str]) -> Dict[str, Dict[str, Any]]:
    result: Dict[str, Dict[str, Any]] = {}
    for env_key, value in environ.items():
        if not env_key.startswith(ENV_PREFIX):
            continue
        parts = env_key[len(ENV_PREFIX):].split("__", 1)
        if len(parts) != 2:
            continue
        section, key = parts
        result.setdefault(section.title(), {})[key.lower()] = value
    return result


# --------------------------------------------------------------------------- #
#  ConfigService
# --------------------------------------------------------------------------- #


class ConfigService:
    """Facade merging layered configuration with type safety."""

    def __init__(
        self,
        *,
        machine_ini: Optional[Path] = None,
        overrides: Optional[Mapping[str, Mapping[str, Any]]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._lock = RLock()
        self._environ = os.environ if environ is None else environ
        if machine_ini is None and self._environ.get(MACHINE_INI_ENV):
            machine_ini = Path(self._environ[MACHINE_INI_ENV]).expanduser()
        self._machine_ini = machine_ini
        self._overrides = {k: dict(v) for k, v in (overrides or {}).items()}
        self.reload()

    # ------------------------------------------------------------------ #
    def reload(self) -> None:
        with self._lock:
            merged: Dict[str, Dict[str, Any]] = {}
            sources: Dict[Tuple[str, str], Dict[str, str]] = {}

            # Layer 0: embedded defaults
            _apply(merged, _DEFAULTS, "code", "embedded", sources)

            # Layer 1: defaults.ini shipped with the package
            if DEFAULTS_INI.exists():
                _apply(merged, _read_ini(DEFAULTS_INI), "defaults.ini", str(DEFAULTS_INI), sources)

            # Layer 2: environment variables
            _apply(merged, _env_overlays(self._environ), "env", "os.environ", sources)

            # Layer 3: machine config
            if self._machine_ini is not None and self._machine_ini.exists():
                _apply(merged, _read_ini(self._machine_ini), "machine", str(self._machine_ini), sources)

            # Layer 4: explicit overrides (tests, embedding applications)
            _apply(merged, self._overrides, "override", "constructor", sources)

            self._merged = merged
            self._sources = sources

            self.storage = _build_dataclass(StorageConfig, merged.get("Storage", {}))
            self.renderer = _build_dataclass(RendererConfig, merged.get("Renderer", {}))
            self.intake = _build_dataclass(IntakeConfig, merged.get("Intake", {}))
            self.signature = _build_dataclass(SignatureConfig, merged.get("Signature", {}))
            self.workflow = _build_dataclass(WorkflowConfig, merged.get("Workflow", {}))

    # ------------------------------------------------------------------ #
    @property
    def app(self) -> AppConfig:
        return AppConfig(
            storage=self.storage,
            renderer=self.renderer,
            intake=self.intake,
            signature=self.signature,
            workflow=self.workflow,
        )

    def get(self, section: str, key: str, *, cast: Callable[[Any], Any] | type = str) -> Any:
        val = self._merged.get(section, {}).get(key)
        if val is None:
            return None
        if isinstance(cast, type):
            return _cast(val, cast)
        return cast(val)

    def meta_source(self, section: str, key: str) -> Dict[str, str] | None:
        return self._sources.get((section, key))


_service: Optional[ConfigService] = None
_service_lock = RLock()


def get_config_service() -> ConfigService:
    """Process-wide ConfigService, created on first use."""
    global _service
    with _service_lock:
        if _service is None:
            _service = ConfigService()
        return _service
