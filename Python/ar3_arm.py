# ar3_arm.py - Tracked state and motion pipeline shared by the real and the simulated AR3.
# The firmware reports neither position nor completion, so the arm keeps a virtual
# copy of every axis in steps and validates each move against it before sending.
# - joint_steps: absolute steps of each axis from its limit switch (physical direction).
# - joint_dirs: per-axis wiring inversion of the direction bit.
# - calib_dirs: True if the limit switch is on the negative side (after joint_dirs).
# - limit_switch_steps: steps from the limit switch to the logical zero of each joint.
# Subclasses supply the transport: _transmit_move, _transmit_home and echo.

import logging
import threading
from abc import ABC, abstractmethod

from ar3_commands import (angles_to_steps, check_step_limits, frame_home_command,
                          frame_move_command, relative_deltas, steps_to_angles)
from ar3_config import (N_AXES, N_JOINTS, DEFAULT_CALIBRATE_SPEED, DEFAULT_PROFILE,
                        MotionProfile, check_bools, check_ints)
from kinematics import AR3_DH_PARAMS, SerialArm

logger = logging.getLogger(__name__)


class AR3Arm(ABC):
    """
    Capability set of an AR3 arm: echo, calibrate, move by steps/joint angles/pose,
    report the tracked position and get/set joint directions.
    """

    def __init__(self, joint_dirs=None, calib_dirs=None, limit_switch_steps=None, dh=AR3_DH_PARAMS):
        self.joint_dirs = check_bools('joint_dirs', joint_dirs if joint_dirs is not None else [False] * N_AXES)
        self.calib_dirs = check_bools('calib_dirs', calib_dirs if calib_dirs is not None else [True] * N_AXES)
        self.limit_switch_steps = check_ints(
            'limit_switch_steps', limit_switch_steps if limit_switch_steps is not None else [0] * N_AXES)
        self.joint_steps = [0] * N_AXES
        self.kinematics = SerialArm(dh)

        # Held for the whole command -> handshake cycle
        self.lock = threading.RLock()

    # ----- transport hooks -----

    @abstractmethod
    def echo(self):
        """Round-trips a test payload with the controller. Raises HandshakeFailure on mismatch."""

    @abstractmethod
    def _transmit_move(self, command: str):
        """Writes an MJ command. Must raise before any state is committed if the write fails."""

    def _after_move(self):
        """Runs after the move is committed (drain + handshake on the real arm)."""

    @abstractmethod
    def _transmit_home(self, command: str):
        """Writes an LL command."""

    def _require_ready(self):
        """Raises ArmNotReady if the arm cannot take commands."""

    # ----- motion -----

    def move_steppers(self, target_steps, profile: MotionProfile = DEFAULT_PROFILE):
        """
        Moves J1-J6 to absolute step positions measured from each joint's logical zero.
        Concept: The targets are converted to relative moves from the tracked position,
                 shifted by limit_switch_steps, and every axis is validated before anything
                 is written. The tracked position is committed once the command is on the wire.
        The track slot of target_steps is accepted but always sent as 0.
        Raises JointOutOfRange (nothing written), ArmIOError, HandshakeFailure.
        """
        with self.lock:
            self._require_ready()
            deltas = relative_deltas(target_steps, self.joint_steps, self.limit_switch_steps)
            new_steps = [self.joint_steps[i] + deltas[i] for i in range(N_AXES)]
            try:
                check_step_limits(new_steps, self.calib_dirs)
            except ValueError as e:
                logger.warning(f"Move rejected: {e}")
                raise

            command = frame_move_command(deltas, self.joint_dirs, profile)
            self._transmit_move(command)
            self.joint_steps = new_steps
            self._after_move()

    def move_joint_radians(self, angles, profile: MotionProfile = DEFAULT_PROFILE):
        """
        Moves to absolute joint angles (radians from calibrated zero). Accepts 6 joint
        angles, or 7 values with the track last.
        """
        angles = list(angles)
        if len(angles) == N_JOINTS:
            angles.append(0.0)
        self.move_steppers(angles_to_steps(angles), profile)

    def move_pose(self, pose, profile: MotionProfile = DEFAULT_PROFILE, **ik_kwargs):
        """
        Moves the end effector to a Pose. Inverse kinematics is seeded with the current
        joint angles so the nearest branch is preferred. IK failures propagate and no
        motion is attempted.
        """
        with self.lock:
            self._require_ready()
            seed = self.current_joint_radians()[:N_JOINTS]
            q, error = self.kinematics.ik(pose, q0=seed, **ik_kwargs)
            logger.debug(f"IK for {pose} -> {q} (error {error:.3e})")
            self.move_joint_radians(list(q), profile)
        return q

    def calibrate(self, home=None, speed: int = DEFAULT_CALIBRATE_SPEED):
        """
        Drives each selected axis to its limit switch. home is 7 booleans (J1-J6, track);
        defaults to all six joints. Homed axes are tracked at 0 (the limit switch) afterwards.
        """
        if home is None:
            home = [True] * N_JOINTS + [False]
        home = check_bools('home', home)
        with self.lock:
            self._require_ready()
            command = frame_home_command(home, self.joint_dirs, self.calib_dirs, speed)
            self._transmit_home(command)
            self.joint_steps = [0 if home[i] else self.joint_steps[i] for i in range(N_AXES)]
            logger.info(f"Calibrated axes {[i + 1 for i in range(N_AXES) if home[i]]}")

    # ----- state -----

    def current_stepper_position(self):
        """Tracked steps of each axis from its limit switch (7 ints)."""
        with self.lock:
            return list(self.joint_steps)

    def current_joint_radians(self):
        """Joint angles from the logical zero of each joint (7 floats, track 0)."""
        with self.lock:
            steps = [self.joint_steps[i] - self.limit_switch_steps[i] for i in range(N_AXES)]
        return steps_to_angles(steps)

    def current_pose(self):
        """End effector Pose from forward kinematics of the current joint angles."""
        return self.kinematics.pose(self.current_joint_radians()[:N_JOINTS])

    def get_directions(self):
        with self.lock:
            return list(self.joint_dirs)

    def set_directions(self, joint_dirs):
        joint_dirs = check_bools('joint_dirs', joint_dirs)
        with self.lock:
            self.joint_dirs = joint_dirs
