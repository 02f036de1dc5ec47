# ar3_commands.py
# Pure helpers between joint space and the AR3 firmware's ASCII protocol.
# - Unit conversion between joint angles and stepper steps.
# - Software step limits of each axis, given its calibration direction.
# - Framing of MJ (move) and LL (home/calibrate) commands.
# Concept: Nothing here touches the serial port or the tracked arm state, so the
#          interpreter and the mock share exactly the same wire format.

import math

from ar3_config import (AXIS_LETTERS, N_AXES, N_JOINTS, RAD_PER_STEP, STEP_LIMITS,
                        DEFAULT_CALIBRATE_SPEED, DEFAULT_PROFILE, MotionProfile)
from ar3_errors import JointOutOfRange

MOVE_COMMAND = 'MJ'
HOME_COMMAND = 'LL'
ECHO_COMMAND = 'TM'


def _axes(name, values):
    values = list(values)
    if len(values) != N_AXES:
        raise ValueError(f"{name} needs {N_AXES} values (J1-J6 and track), got {len(values)}")
    return values


def round_steps(x) -> int:
    """Nearest whole step, with exact halves rounded away from zero."""
    return int(math.copysign(math.floor(abs(x) + 0.5), x))


def steps_to_angles(steps, degrees=False) -> list:
    """
    Converts stepper steps to joint angles, in radians unless degrees is set.
    The track slot has no angle and always comes back as 0.
    """
    steps = _axes('steps', steps)
    angles = []
    for i in range(N_JOINTS):
        angle = RAD_PER_STEP[i] * steps[i]
        angles.append(math.degrees(angle) if degrees else angle)
    angles.append(0.0)
    return angles


def angles_to_steps(angles, degrees=False) -> list:
    """
    Converts joint angles (radians, or degrees if set) to the nearest whole step.
    Concept: No wrapping is done; out-of-reach results are caught by the limit check.
    The track has 0 rad/step, so its slot is always 0.
    """
    angles = _axes('angles', angles)
    steps = []
    for i in range(N_JOINTS):
        angle = math.radians(angles[i]) if degrees else angles[i]
        steps.append(round_steps(angle / RAD_PER_STEP[i]))
    steps.append(0)
    return steps


def step_bounds(axis: int, calib_dir: bool):
    """
    Allowed [lower, upper] absolute steps of an axis (0-based), measured from its limit switch.
    With calib_dir True the switch is on the negative side, so travel is [0, limit];
    otherwise it is [-limit, 0].
    """
    limit = STEP_LIMITS[axis]
    if calib_dir:
        return 0, limit
    return -limit, 0


def check_step_limits(new_steps, calib_dirs):
    """
    Validates J1-J6 of new_steps against step_bounds.
    Raises JointOutOfRange on the first joint outside its travel.
    """
    for i in range(N_JOINTS):
        lower, upper = step_bounds(i, calib_dirs[i])
        if new_steps[i] < lower or new_steps[i] > upper:
            raise JointOutOfRange(i + 1, lower, upper, new_steps[i])


def frame_move_command(deltas, joint_dirs, profile: MotionProfile = DEFAULT_PROFILE) -> str:
    """
    Builds an MJ command from 7 relative step counts.
    Each axis is written as <letter><sign><magnitude>, where sign is 1 for a negative
    delta, flipped when joint_dirs inverts that axis (wiring correction).
    The motion profile is appended as S<speed>G<accspd>H<accdur>I<dccdur>K<dccspd>.
    """
    deltas = _axes('deltas', deltas)
    joint_dirs = _axes('joint_dirs', joint_dirs)

    command = MOVE_COMMAND
    for i, delta in enumerate(deltas):
        delta = int(delta)
        sign = 1 if delta < 0 else 0
        if joint_dirs[i]:
            sign = 1 - sign
        command += f"{AXIS_LETTERS[i]}{sign}{abs(delta)}"

    command += (f"S{profile.speed}G{profile.accspd}H{profile.accdur}"
                f"I{profile.dccdur}K{profile.dccspd}\n")
    return command


def frame_home_command(home, joint_dirs, calib_dirs, speed: int = DEFAULT_CALIBRATE_SPEED) -> str:
    """
    Builds an LL command sending each selected axis the full travel of its step limit
    towards its limit switch. Axes not selected are sent as <letter>00.
    """
    home = _axes('home', home)
    joint_dirs = _axes('joint_dirs', joint_dirs)
    calib_dirs = _axes('calib_dirs', calib_dirs)

    command = HOME_COMMAND
    for i in range(N_AXES):
        if not home[i]:
            command += f"{AXIS_LETTERS[i]}00"
            continue
        dir_bit = not (joint_dirs[i] != calib_dirs[i])
        command += f"{AXIS_LETTERS[i]}{0 if dir_bit else 1}{STEP_LIMITS[i]}"

    command += f"S{speed}\n"
    return command


def frame_echo_command(payload: str) -> str:
    return f"{ECHO_COMMAND}{payload}\n"


def relative_deltas(target_steps, joint_steps, limit_switch_steps):
    """
    Converts absolute targets (from each joint's logical zero) into relative moves
    from the tracked position (from the limit switch). The track is always 0.
    """
    target_steps = _axes('target_steps', target_steps)
    for i in range(N_JOINTS):
        v = target_steps[i]
        if isinstance(v, bool) or int(v) != v:
            raise ValueError(f"J{i + 1} target must be a whole number of steps, got {v!r}")
    deltas = [int(target_steps[i]) - joint_steps[i] + limit_switch_steps[i] for i in range(N_JOINTS)]
    deltas.append(0)
    return deltas

