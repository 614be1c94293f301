"""
Constants and default catalogs for the extrusion process monitor.

This module contains the nominal operating point of the monitored
extrusion line, the default monitor settings, and the fault mode
catalog used for diagnosis and fault injection.

The fault magnitudes and durations are demonstration values. They have not
been calibrated against plant data and can be overridden through
configuration.
"""

# =============================================================================
# Process Parameters
# =============================================================================
# key: (label, unit, mean, std, ucl, lcl, short, color)
PARAMETER_TABLE = {
    "barrel_temp": ("Barrel Temp", "°C", 200.0, 3.0, 209.0, 191.0, "BT", "#FF6B35"),
    "screw_speed": ("Screw Speed", "RPM", 85.0, 2.0, 91.0, 79.0, "SS", "#00C9A7"),
    "melt_pressure": ("Melt Pressure", "bar", 280.0, 8.0, 304.0, 256.0, "MP", "#4CC9F0"),
    "line_speed": ("Line Speed", "m/min", 45.0, 1.5, 49.5, 40.5, "LS", "#FFD166"),
    "die_pressure": ("Die Pressure", "bar", 180.0, 5.0, 195.0, 165.0, "DP", "#A78BFA"),
    "wall_thickness": ("Wall Thickness", "mm", 1.2, 0.05, 1.35, 1.05, "WT", "#F72585"),
}

PARAMETER_KEYS = list(PARAMETER_TABLE.keys())
NUM_PARAMETERS = len(PARAMETER_KEYS)

# Shewhart limit width in sigma units
SIGMA_LIMIT = 3.0

# =============================================================================
# Joint Statistic
# =============================================================================
# Chi-squared critical value, df=6, alpha=0.05
T2_UCL = 12.6

# Alarm log key and label for joint statistic excursions
JOINT_KEY = "t2"
JOINT_LABEL = "T² Multivariate"

# =============================================================================
# Monitor Settings
# =============================================================================
HISTORY_CAPACITY = 120  # snapshots kept for trend charts
ALARM_CAPACITY = 80  # alarm events kept in the log
TICK_INTERVAL = 0.8  # seconds between ticks
DEFAULT_RANDOM_SEED = 1234


# =============================================================================
# Fault Mode Catalog
# =============================================================================
# Each entry: primary driver, expected shift, injection duration (ticks),
# normalized contribution signature over all parameters, and diagnosis
# metadata (mechanism, corrective actions, references).
FAULT_MODES = [
    {
        "name": "Die Wear",
        "param": "die_pressure",
        "delta": -28.0,
        "duration": 10,
        "severity": "HIGH",
        "color": "#ef4444",
        "signature": {
            "die_pressure": 0.65, "melt_pressure": 0.18, "wall_thickness": 0.10,
            "line_speed": 0.04, "barrel_temp": 0.02, "screw_speed": 0.01,
        },
        "mechanism": (
            "Progressive wear of die land increases die gap, causing die "
            "pressure drop. Downstream effect increases wall thickness "
            "variability."
        ),
        "actions": [
            "Schedule immediate die inspection and measurement",
            "Compare current die gap to nominal specification",
            "Check die land surface for galling or erosion",
            "Prepare spare die set for changeover",
            "Log cumulative throughput since last die change",
        ],
        "references": (
            "ISO 9001 §8.5.1 — Controlled production; die maintenance "
            "interval per OEM schedule"
        ),
    },
    {
        "name": "Screw Slip",
        "param": "screw_speed",
        "delta": -12.0,
        "duration": 6,
        "severity": "MEDIUM",
        "color": "#f97316",
        "signature": {
            "screw_speed": 0.60, "melt_pressure": 0.20, "line_speed": 0.10,
            "barrel_temp": 0.06, "die_pressure": 0.03, "wall_thickness": 0.01,
        },
        "mechanism": (
            "Screw slippage in feed zone caused by bridging, overheating, or "
            "worn screw flight. Reduces throughput and melt pressure "
            "simultaneously."
        ),
        "actions": [
            "Inspect feed zone for material bridging or agglomeration",
            "Check barrel cooling water flow in feed zone",
            "Measure screw-barrel clearance — replace if > 2× nominal",
            "Verify hopper vibration / agitator is functioning",
            "Reduce back pressure setpoint temporarily and observe",
        ],
        "references": (
            "Rauwendaal, C. (2014). Polymer Extrusion, §7.3 — Solids "
            "conveying instabilities"
        ),
    },
    {
        "name": "Temp Spike",
        "param": "barrel_temp",
        "delta": 22.0,
        "duration": 5,
        "severity": "HIGH",
        "color": "#FF6B35",
        "signature": {
            "barrel_temp": 0.70, "melt_pressure": 0.15, "screw_speed": 0.08,
            "die_pressure": 0.04, "line_speed": 0.02, "wall_thickness": 0.01,
        },
        "mechanism": (
            "Zone heater overshoot or thermocouple failure causes barrel "
            "temperature excursion. Reduces melt viscosity, alters pressure "
            "profile, and risks polymer degradation."
        ),
        "actions": [
            "Check PID setpoint and actual temperature for affected zone",
            "Inspect thermocouple calibration and connection",
            "Verify heater band contactor is not stuck closed",
            "Check for localized viscous dissipation hot spot",
            "If T > 230°C for XLPE/PVC — initiate material purge to prevent degradation",
        ],
        "references": (
            "IEC 60502-1 §9 — Conductor temperature limits during manufacture"
        ),
    },
    {
        "name": "Pressure Surge",
        "param": "melt_pressure",
        "delta": 45.0,
        "duration": 7,
        "severity": "HIGH",
        "color": "#4CC9F0",
        "signature": {
            "melt_pressure": 0.62, "barrel_temp": 0.14, "die_pressure": 0.12,
            "screw_speed": 0.07, "wall_thickness": 0.03, "line_speed": 0.02,
        },
        "mechanism": (
            "Sudden melt pressure surge caused by screen pack blockage, cold "
            "plug, or abrupt screw speed increase. Risk of die swell "
            "instability and dimensional non-conformance."
        ),
        "actions": [
            "Check screen pack differential pressure — replace if blocked",
            "Inspect breaker plate for embedded contamination",
            "Verify melt temperature uniformity across die face",
            "Check for cold slug from recent material interruption",
            "Review screw speed ramp rate — reduce acceleration limit",
        ],
        "references": (
            "Tadmor & Gogos (2006). Principles of Polymer Processing, §13 — "
            "Pressure distribution"
        ),
    },
    {
        "name": "Line Slowdown",
        "param": "line_speed",
        "delta": -8.0,
        "duration": 8,
        "severity": "MEDIUM",
        "color": "#FFD166",
        "signature": {
            "line_speed": 0.58, "wall_thickness": 0.22, "die_pressure": 0.10,
            "melt_pressure": 0.06, "screw_speed": 0.03, "barrel_temp": 0.01,
        },
        "mechanism": (
            "Capstan or haul-off speed reduction causes material to "
            "accumulate at die exit. Increases wall thickness, alters draw "
            "ratio and molecular orientation."
        ),
        "actions": [
            "Inspect haul-off belt tension and grip condition",
            "Check caterpillar drive motor torque feedback",
            "Inspect capstan for material wrap-up or slip",
            "Verify line speed encoder signal continuity",
            "Adjust screw speed to compensate if slowdown is sustained",
        ],
        "references": (
            "BS 7655 — Cable insulation dimensional tolerances during "
            "manufacture"
        ),
    },
    {
        "name": "Thin Wall",
        "param": "wall_thickness",
        "delta": -0.18,
        "duration": 6,
        "severity": "CRITICAL",
        "color": "#F72585",
        "signature": {
            "wall_thickness": 0.68, "die_pressure": 0.14, "line_speed": 0.10,
            "melt_pressure": 0.05, "screw_speed": 0.02, "barrel_temp": 0.01,
        },
        "mechanism": (
            "Insulation wall below minimum specification. Caused by excessive "
            "line speed, die eccentricity, or material low viscosity. "
            "Directly impacts dielectric withstand voltage."
        ),
        "actions": [
            "IMMEDIATE: Flag all cable produced since alarm onset for HV test",
            "Reduce line speed by 10% and observe wall thickness response",
            "Check die centering — measure eccentricity at 4 positions",
            "Verify material MFI (melt flow index) against specification",
            "Inspect spark tester electrode gap — may not detect thin wall faults",
            "Notify QA for enhanced sampling inspection per IEC 60811",
        ],
        "references": (
            "IEC 60502-1 §8.3 — Minimum insulation thickness requirements; "
            "IEC 60811-1-1 — Measurement methods"
        ),
    },
]

FAULT_NAMES = [mode["name"] for mode in FAULT_MODES]
