"""
Monitor configuration and JSON configuration loader.

The parameter registry, the fault signature library and the monitor
settings are loaded once at startup. A configuration file is a JSON
document with three optional sections:

    {
        "parameters": {"barrel_temp": {"mean": 200, "std": 3, ...}, ...},
        "signatures": [{"name": "Die Wear", "param": "die_pressure", ...}],
        "monitor": {"joint_ucl": 12.6, "history_capacity": 120, ...}
    }

Missing sections fall back to the built-in extrusion line defaults. Any
invalid content raises ConfigurationError before monitoring starts.
"""

import json
import logging
from dataclasses import dataclass, field, asdict, fields
from pathlib import Path
from typing import Optional, Dict, Any, Union

from .constants import (
    T2_UCL,
    HISTORY_CAPACITY,
    ALARM_CAPACITY,
    TICK_INTERVAL,
    FAULT_MODES,
)
from .exceptions import ConfigurationError
from .multivariate import chi2_control_limit
from .parameters import ParameterRegistry, default_registry
from .signatures import SignatureLibrary

logger = logging.getLogger(__name__)


@dataclass
class MonitorConfig:
    """Settings for the stream controller and its cadence."""
    joint_ucl: float = T2_UCL
    history_capacity: int = HISTORY_CAPACITY  # M, snapshots kept
    alarm_capacity: int = ALARM_CAPACITY  # N, alarm events kept
    tick_interval: float = TICK_INTERVAL  # seconds between ticks

    # Fault injection
    fault_magnitude_scale: float = 1.0
    random_seed: Optional[int] = None

    def __post_init__(self):
        if not self.joint_ucl > 0:
            raise ConfigurationError(f"joint_ucl must be positive, got {self.joint_ucl}")
        if self.history_capacity < 1:
            raise ConfigurationError(
                f"history_capacity must be >= 1, got {self.history_capacity}"
            )
        if self.alarm_capacity < 1:
            raise ConfigurationError(
                f"alarm_capacity must be >= 1, got {self.alarm_capacity}"
            )
        if self.tick_interval < 0:
            raise ConfigurationError(
                f"tick_interval must be >= 0, got {self.tick_interval}"
            )
        if self.fault_magnitude_scale < 0:
            raise ConfigurationError(
                f"fault_magnitude_scale must be >= 0, got {self.fault_magnitude_scale}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any], dof: int = None) -> "MonitorConfig":
        """
        Build a config from a mapping.

        A ``joint_confidence`` entry derives ``joint_ucl`` from the
        chi-squared distribution with ``dof`` degrees of freedom.
        """
        data = dict(data)
        confidence = data.pop("joint_confidence", None)
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown monitor settings: {sorted(unknown)}")
        if confidence is not None and "joint_ucl" not in data:
            if dof is None:
                raise ConfigurationError("joint_confidence requires the parameter count")
            try:
                data["joint_ucl"] = chi2_control_limit(dof, confidence)
            except ValueError as e:
                raise ConfigurationError(str(e)) from e
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MonitorSetup:
    """Everything loaded at startup: registry, signatures and settings."""
    registry: ParameterRegistry
    library: SignatureLibrary
    config: MonitorConfig = field(default_factory=MonitorConfig)

    def create_controller(self):
        """Create a StreamController for this setup."""
        from .controller import StreamController
        return StreamController(self.registry, self.library, self.config)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "parameters": self.registry.to_dict(),
            "signatures": self.library.to_list(),
            "monitor": self.config.to_dict(),
        }


def default_setup() -> MonitorSetup:
    """Built-in extrusion line registry, catalog and settings."""
    registry = default_registry()
    return MonitorSetup(
        registry=registry,
        library=SignatureLibrary.from_list(FAULT_MODES, registry),
        config=MonitorConfig(),
    )


def setup_from_dict(data: Dict[str, Any]) -> MonitorSetup:
    """
    Build a MonitorSetup from a parsed configuration document.

    Raises:
        ConfigurationError: If any section is invalid
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration must be a JSON object")

    if "parameters" in data:
        registry = ParameterRegistry.from_dict(data["parameters"])
    else:
        registry = default_registry()

    signatures = data.get("signatures", FAULT_MODES)
    if not isinstance(signatures, list):
        raise ConfigurationError("'signatures' must be a list")
    library = SignatureLibrary.from_list(signatures, registry)

    config = MonitorConfig.from_dict(data.get("monitor", {}), dof=len(registry))

    logger.info(
        "Loaded %d parameters, %d fault signatures (joint UCL %.3f)",
        len(registry), len(library), config.joint_ucl,
    )
    return MonitorSetup(registry=registry, library=library, config=config)


def load_config(path: Union[str, Path]) -> MonitorSetup:
    """
    Load a MonitorSetup from a JSON file.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If the content is not valid JSON or is invalid
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
    return setup_from_dict(data)


def dump_config(setup: MonitorSetup, path: Union[str, Path]):
    """Write a MonitorSetup as a JSON file readable by load_config()."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(setup.to_dict(), f, indent=2, ensure_ascii=False)
