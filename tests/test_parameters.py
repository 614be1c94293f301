"""
Tests for the parameter registry and snapshots.

This module tests:
1. ParameterDefinition validation and helpers
2. ParameterRegistry construction, ordering and serialization
3. The built-in extrusion line registry
4. Snapshot reading validation
"""

import math

import pytest

from extrusion_mspc.constants import PARAMETER_KEYS, NUM_PARAMETERS
from extrusion_mspc.exceptions import (
    ConfigurationError,
    MissingReadingError,
    InvalidReadingError,
    InputError,
)
from extrusion_mspc.parameters import (
    ParameterDefinition,
    ParameterRegistry,
    default_registry,
)
from extrusion_mspc.snapshot import Snapshot


# =============================================================================
# PARAMETER DEFINITION TESTS
# =============================================================================

class TestParameterDefinition:
    """Tests for ParameterDefinition."""

    def test_from_sigma_limits(self):
        """from_sigma places limits at mean ± 3σ by default."""
        p = ParameterDefinition.from_sigma("barrel_temp", mean=200.0, std=3.0)
        assert p.ucl == 209.0
        assert p.lcl == 191.0
        assert p.label == "barrel_temp"

    def test_from_sigma_custom_width(self):
        """from_sigma honors a custom limit width."""
        p = ParameterDefinition.from_sigma("p", mean=10.0, std=1.0, k=2.0)
        assert p.ucl == 12.0
        assert p.lcl == 8.0

    def test_zero_std_rejected(self):
        """A zero standard deviation is a configuration error."""
        with pytest.raises(ConfigurationError, match="std must be positive"):
            ParameterDefinition("p", "P", "", mean=0.0, std=0.0, ucl=1.0, lcl=-1.0)

    def test_negative_std_rejected(self):
        """A negative standard deviation is a configuration error."""
        with pytest.raises(ConfigurationError):
            ParameterDefinition("p", "P", "", mean=0.0, std=-1.0, ucl=1.0, lcl=-1.0)

    def test_inverted_limits_rejected(self):
        """UCL must exceed LCL."""
        with pytest.raises(ConfigurationError, match="must exceed"):
            ParameterDefinition("p", "P", "", mean=0.0, std=1.0, ucl=-1.0, lcl=1.0)

    def test_mean_outside_limits_rejected(self):
        """The mean must lie strictly between the limits."""
        with pytest.raises(ConfigurationError, match="between"):
            ParameterDefinition("p", "P", "", mean=5.0, std=1.0, ucl=3.0, lcl=-3.0)

    def test_non_finite_rejected(self):
        """Non-finite numbers are rejected."""
        with pytest.raises(ConfigurationError, match="finite"):
            ParameterDefinition("p", "P", "", mean=math.nan, std=1.0, ucl=3.0, lcl=-3.0)

    def test_non_numeric_rejected(self):
        """Strings are not accepted for numeric fields."""
        with pytest.raises(ConfigurationError):
            ParameterDefinition("p", "P", "", mean="0", std=1.0, ucl=3.0, lcl=-3.0)

    def test_z_score(self):
        """z = (x - mean) / std."""
        p = ParameterDefinition.from_sigma("p", mean=280.0, std=8.0)
        assert p.z_score(280.0) == 0.0
        assert p.z_score(296.0) == 2.0
        assert p.z_score(264.0) == -2.0

    def test_format_value_mm_three_decimals(self):
        """Millimetre readings are shown with three decimals."""
        p = ParameterDefinition.from_sigma("wt", mean=1.2, std=0.05, unit="mm")
        assert p.format_value(1.0234) == "1.023mm"

    def test_format_value_default_one_decimal(self):
        """Other units are shown with one decimal."""
        p = ParameterDefinition.from_sigma("mp", mean=280.0, std=8.0, unit="bar")
        assert p.format_value(310.26) == "310.3bar"

    def test_frozen(self):
        """Definitions are immutable."""
        p = ParameterDefinition.from_sigma("p", mean=0.0, std=1.0)
        with pytest.raises(AttributeError):
            p.mean = 1.0


# =============================================================================
# PARAMETER REGISTRY TESTS
# =============================================================================

class TestParameterRegistry:
    """Tests for ParameterRegistry."""

    def test_preserves_order(self):
        """Iteration follows registration order."""
        registry = ParameterRegistry([
            ParameterDefinition.from_sigma("b", 0.0, 1.0),
            ParameterDefinition.from_sigma("a", 0.0, 1.0),
            ParameterDefinition.from_sigma("c", 0.0, 1.0),
        ])
        assert list(registry) == ["b", "a", "c"]
        assert registry.keys_list == ["b", "a", "c"]

    def test_duplicate_key_rejected(self):
        """Duplicate keys are a configuration error."""
        with pytest.raises(ConfigurationError, match="Duplicate"):
            ParameterRegistry([
                ParameterDefinition.from_sigma("a", 0.0, 1.0),
                ParameterDefinition.from_sigma("a", 1.0, 1.0),
            ])

    def test_empty_rejected(self):
        """An empty registry is a configuration error."""
        with pytest.raises(ConfigurationError):
            ParameterRegistry([])

    def test_wrong_type_rejected(self):
        """Only ParameterDefinition entries are accepted."""
        with pytest.raises(ConfigurationError):
            ParameterRegistry([{"key": "a"}])

    def test_mapping_interface(self):
        """The registry behaves as a read-only mapping."""
        registry = default_registry()
        assert "barrel_temp" in registry
        assert registry["barrel_temp"].mean == 200.0
        assert len(registry) == NUM_PARAMETERS
        assert registry.degrees_of_freedom == NUM_PARAMETERS

    def test_from_dict_default_limits(self):
        """Missing limits default to mean ± 3σ."""
        registry = ParameterRegistry.from_dict({
            "p1": {"mean": 10.0, "std": 2.0, "unit": "bar"},
        })
        assert registry["p1"].ucl == 16.0
        assert registry["p1"].lcl == 4.0
        assert registry["p1"].label == "p1"

    def test_from_dict_explicit_limits(self):
        """Explicit limits may diverge from the 3σ band."""
        registry = ParameterRegistry.from_dict({
            "p1": {"mean": 10.0, "std": 2.0, "ucl": 13.0, "lcl": 5.0},
        })
        assert registry["p1"].ucl == 13.0
        assert registry["p1"].lcl == 5.0

    def test_from_dict_missing_field(self):
        """A missing std is reported as a configuration error."""
        with pytest.raises(ConfigurationError, match="std"):
            ParameterRegistry.from_dict({"p1": {"mean": 10.0}})

    def test_from_dict_zero_std(self):
        """A zero std in a config mapping is rejected."""
        with pytest.raises(ConfigurationError):
            ParameterRegistry.from_dict({"p1": {"mean": 10.0, "std": 0}})

    def test_from_dict_not_mapping(self):
        """Each parameter entry must be a mapping."""
        with pytest.raises(ConfigurationError):
            ParameterRegistry.from_dict({"p1": [1, 2]})

    def test_to_dict_round_trip(self):
        """to_dict output is accepted by from_dict."""
        registry = default_registry()
        rebuilt = ParameterRegistry.from_dict(registry.to_dict())
        assert rebuilt.keys_list == registry.keys_list
        for key in registry:
            assert rebuilt[key] == registry[key]


class TestDefaultRegistry:
    """Tests for the built-in extrusion line registry."""

    def test_keys(self):
        registry = default_registry()
        assert registry.keys_list == PARAMETER_KEYS

    @pytest.mark.parametrize("key,mean,std,ucl,lcl", [
        ("barrel_temp", 200.0, 3.0, 209.0, 191.0),
        ("screw_speed", 85.0, 2.0, 91.0, 79.0),
        ("melt_pressure", 280.0, 8.0, 304.0, 256.0),
        ("line_speed", 45.0, 1.5, 49.5, 40.5),
        ("die_pressure", 180.0, 5.0, 195.0, 165.0),
        ("wall_thickness", 1.2, 0.05, 1.35, 1.05),
    ])
    def test_operating_point(self, key, mean, std, ucl, lcl):
        """Nominal values and limits of each monitored variable."""
        p = default_registry()[key]
        assert p.mean == mean
        assert p.std == std
        assert p.ucl == ucl
        assert p.lcl == lcl

    def test_wall_thickness_unit(self):
        assert default_registry()["wall_thickness"].unit == "mm"


# =============================================================================
# SNAPSHOT TESTS
# =============================================================================

class TestSnapshot:
    """Tests for Snapshot."""

    def test_readings_are_read_only(self):
        """Recorded readings cannot be mutated."""
        snap = Snapshot(1, {"a": 1.0})
        with pytest.raises(TypeError):
            snap.readings["a"] = 2.0

    def test_input_dict_is_copied(self):
        """Mutating the source dict does not change the snapshot."""
        source = {"a": 1.0}
        snap = Snapshot(1, source)
        source["a"] = 99.0
        assert snap["a"] == 1.0

    def test_reading_returns_float(self):
        snap = Snapshot(1, {"a": 3})
        assert snap.reading("a") == 3.0
        assert isinstance(snap.reading("a"), float)

    def test_missing_reading(self):
        """A missing key raises MissingReadingError with context."""
        snap = Snapshot(7, {"a": 1.0})
        with pytest.raises(MissingReadingError) as exc_info:
            snap.reading("b")
        assert exc_info.value.parameter == "b"
        assert exc_info.value.sequence == 7

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf, "12", None, True])
    def test_invalid_reading(self, value):
        """Non-finite and non-numeric readings are rejected."""
        snap = Snapshot(1, {"a": value})
        with pytest.raises(InvalidReadingError):
            snap.reading("a")

    def test_input_errors_share_base(self):
        """Input errors can be caught together."""
        snap = Snapshot(1, {})
        with pytest.raises(InputError):
            snap.reading("a")

    def test_replace(self):
        """replace returns a new snapshot and leaves the original intact."""
        snap = Snapshot(3, {"a": 1.0, "b": 2.0})
        other = snap.replace("a", 0.0)
        assert other["a"] == 0.0
        assert other["b"] == 2.0
        assert other.sequence == 3
        assert snap["a"] == 1.0

    def test_to_dict(self):
        snap = Snapshot(2, {"a": 1.5})
        assert snap.to_dict() == {"sequence": 2, "readings": {"a": 1.5}}
