# ==========================================
# AR3 FIRMWARE & WIRING CONFIGURATION
# ==========================================
# Units: steps for the stepper axes, radians for joint angles.
# The firmware constants come from the ARbot.cal file shipped with the AR3
# control software and must not change. The wiring data (directions, limit
# switch offsets, serial port) differ per arm and live in ArmConfig, which can
# be saved to and loaded from a JSON file.

import json
import logging
import math
from dataclasses import dataclass, field, asdict
from typing import List

logger = logging.getLogger(__name__)

N_AXES = 7          # J1..J6 plus the track
N_JOINTS = 6

# Axis letters used by the firmware (the "commandCalc" order of the ARCS software).
AXIS_LETTERS = ('A', 'B', 'C', 'D', 'E', 'F', 'T')

# Travel of each axis in steps, from its limit switch. The track is unused.
STEP_LIMITS = (15200, 7300, 7850, 15200, 4575, 6625, 0)

# Stepper resolution in degrees per step, from the AR3 motors and gearing.
DEG_PER_STEP = (0.0225, 0.018, 0.018, 0.01092214664, 0.04723477289, 0.02343358396)
RAD_PER_STEP = tuple(math.radians(d) for d in DEG_PER_STEP) + (0.0,)  # track: 0 mm/step

# Serial settings: 115200 8N1, no flow control, 1 s timeout
BAUD_RATE = 115200
TIMEOUT = 1.0
SETTLE_TIME = 1.0   # some boards reset when DTR toggles on open
READ_SIZE = 128

# Echo handshake
ECHO_PAYLOAD = "Test"

# Motion defaults (lines 7941-7945 and 4659 of the ARCS software)
DEFAULT_SPEED = 25
DEFAULT_ACCDUR = 15
DEFAULT_ACCSPD = 10
DEFAULT_DCCDUR = 20
DEFAULT_DCCSPD = 5
DEFAULT_CALIBRATE_SPEED = 50

DEFAULT_PORT = '/dev/ttyUSB0'


def check_count(name, values, expected=N_AXES):
    values = list(values)
    if len(values) != expected:
        raise ValueError(f"{name} needs {expected} values, got {len(values)}")
    return values


def check_bools(name, values):
    values = check_count(name, values)
    for v in values:
        if not isinstance(v, bool):
            raise ValueError(f"{name} must hold booleans, got {v!r}")
    return values


def check_ints(name, values):
    values = check_count(name, values)
    for v in values:
        if isinstance(v, bool) or not isinstance(v, int):
            raise ValueError(f"{name} must hold integers, got {v!r}")
    return values


@dataclass(frozen=True)
class MotionProfile:
    """
    Trapezoidal profile parameters forwarded to the firmware on every MJ command.
    Concept: speed is the cruise speed; acc*/dcc* set the ramp duration and speed.
    """
    speed: int = DEFAULT_SPEED
    accdur: int = DEFAULT_ACCDUR
    accspd: int = DEFAULT_ACCSPD
    dccdur: int = DEFAULT_DCCDUR
    dccspd: int = DEFAULT_DCCSPD

    def __post_init__(self):
        for name in ('speed', 'accdur', 'accspd', 'dccdur', 'dccspd'):
            v = getattr(self, name)
            if isinstance(v, bool) or not isinstance(v, int) or v < 0:
                raise ValueError(f"Motion profile {name} must be a non-negative integer, got {v!r}")


DEFAULT_PROFILE = MotionProfile()


@dataclass
class ArmConfig:
    """Per-arm wiring and connection settings."""
    port: str = DEFAULT_PORT
    baud_rate: int = BAUD_RATE
    timeout: float = TIMEOUT
    settle_time: float = SETTLE_TIME

    # True inverts the direction bit sent to the firmware for that axis
    joint_dirs: List[bool] = field(default_factory=lambda: [False] * N_AXES)
    # True means the limit switch is on the negative side (after joint_dirs)
    calib_dirs: List[bool] = field(default_factory=lambda: [True] * N_AXES)
    # Directional steps from the limit switch to the logical zero of each joint
    limit_switch_steps: List[int] = field(default_factory=lambda: [0] * N_AXES)

    profile: MotionProfile = DEFAULT_PROFILE
    calibrate_speed: int = DEFAULT_CALIBRATE_SPEED

    def __post_init__(self):
        self.joint_dirs = check_bools('joint_dirs', self.joint_dirs)
        self.calib_dirs = check_bools('calib_dirs', self.calib_dirs)
        self.limit_switch_steps = check_ints('limit_switch_steps', self.limit_switch_steps)
        if isinstance(self.profile, dict):
            self.profile = MotionProfile(**self.profile)

    @classmethod
    def from_dict(cls, data: dict) -> "ArmConfig":
        known = {f for f in cls.__dataclass_fields__}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown arm config keys: {sorted(unknown)}")
        try:
            return cls(**data)
        except TypeError as e:
            raise ValueError(f"Invalid arm config: {e}") from e

    def to_dict(self) -> dict:
        return asdict(self)


def load_config(path) -> ArmConfig:
    """Reads an ArmConfig from a JSON file."""
    with open(path, 'r') as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Arm config {path} is not valid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Arm config {path} must be a JSON object")
    config = ArmConfig.from_dict(data)
    logger.info(f"Arm configuration loaded from {path}")
    return config


def save_config(config: ArmConfig, path):
    with open(path, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)
    logger.info(f"Arm configuration saved to {path}")
