"""
Tests for unit conversion, step limits and AR3 command framing.
"""

import math

import pytest
import numpy as np

from ar3_commands import (angles_to_steps, round_steps, steps_to_angles, step_bounds, check_step_limits,
                          frame_move_command, frame_home_command, frame_echo_command, relative_deltas)
from ar3_config import RAD_PER_STEP, STEP_LIMITS, MotionProfile
from ar3_errors import JointOutOfRange

NO_FLIP = [False] * 7
CALIB_NEG = [True] * 7


class TestUnitConversion:
    """Test cases for steps_to_angles and angles_to_steps."""

    def test_round_trip_within_one_step(self):
        rng = np.random.default_rng(3)

        for _ in range(200):
            angles = list(rng.uniform(-2 * np.pi, 2 * np.pi, 6)) + [0.0]
            back = steps_to_angles(angles_to_steps(angles))

            for i in range(6):
                assert abs(back[i] - angles[i]) <= RAD_PER_STEP[i]

    def test_known_values(self):
        steps = angles_to_steps([math.radians(0.0225), 0.0, 0.0, 0.0, 0.0, 0.0, 0.0])
        assert steps == [1, 0, 0, 0, 0, 0, 0]

    def test_degrees_flag(self):
        steps = angles_to_steps([90.0, 18.0, -18.0, 0.0, 0.0, 0.0, 0.0], degrees=True)

        assert steps[:3] == [4000, 1000, -1000]
        assert steps_to_angles(steps, degrees=True)[:3] == pytest.approx([90.0, 18.0, -18.0])

    def test_track_is_always_zero(self):
        assert angles_to_steps([0.0] * 6 + [123.0])[6] == 0
        assert steps_to_angles([0] * 6 + [500])[6] == 0.0

    def test_halves_round_away_from_zero(self):
        assert round_steps(2.5) == 3
        assert round_steps(-2.5) == -3
        assert round_steps(0.5) == 1
        assert round_steps(2.4999) == 2
        assert round_steps(-0.4) == 0

    def test_wrong_length_rejected(self):
        with pytest.raises(ValueError):
            angles_to_steps([0.0] * 6)
        with pytest.raises(ValueError):
            steps_to_angles([0] * 8)


class TestStepLimits:
    """Test cases for step_bounds and check_step_limits."""

    def test_bounds_follow_calibration_side(self):
        assert step_bounds(0, True) == (0, 15200)
        assert step_bounds(0, False) == (-15200, 0)
        assert step_bounds(5, True) == (0, STEP_LIMITS[5])

    def test_limits_are_inclusive(self):
        check_step_limits(list(STEP_LIMITS), CALIB_NEG)
        check_step_limits([0] * 7, CALIB_NEG)

    def test_first_offending_joint_reported(self):
        with pytest.raises(JointOutOfRange) as exc_info:
            check_step_limits([0, 0, 7851, 0, 0, 500_000_000, 0], CALIB_NEG)

        err = exc_info.value
        assert err.axis == 3
        assert (err.min, err.max, err.got) == (0, 7850, 7851)
        assert "J3 out of range" in str(err)

    def test_negative_side(self):
        calib = [False] * 7
        check_step_limits([-100] * 6 + [0], calib)
        with pytest.raises(JointOutOfRange):
            check_step_limits([1, 0, 0, 0, 0, 0, 0], calib)

    def test_out_of_range_is_value_error(self):
        with pytest.raises(ValueError):
            check_step_limits([-1, 0, 0, 0, 0, 0, 0], CALIB_NEG)


class TestMoveFraming:
    """Test cases for frame_move_command."""

    def test_default_profile(self):
        command = frame_move_command([100] * 6 + [0], NO_FLIP)
        assert command == "MJA0100B0100C0100D0100E0100F0100T00S25G10H15I20K5\n"

    def test_explicit_profile(self):
        profile = MotionProfile(speed=25, accdur=15, accspd=10, dccdur=20, dccspd=5)
        command = frame_move_command([100] * 6 + [0], NO_FLIP, profile)
        assert command.encode('ascii') == b"MJA0100B0100C0100D0100E0100F0100T00S25G10H15I20K5\n"

    def test_negative_delta_sets_sign(self):
        command = frame_move_command([-250, 0, 0, 0, 0, 0, 0], NO_FLIP)
        assert command.startswith("MJA1250B00")

    def test_joint_dirs_flip_sign(self):
        dirs = [True, False, False, False, False, True, False]
        command = frame_move_command([100, 100, 100, 100, 100, -100, 0], dirs)
        assert command.startswith("MJA1100B0100C0100D0100E0100F0100T00")

    def test_needs_seven_axes(self):
        with pytest.raises(ValueError):
            frame_move_command([100] * 6, NO_FLIP)


class TestHomeFraming:
    """Test cases for frame_home_command and frame_echo_command."""

    def test_all_joints(self):
        command = frame_home_command([True] * 6 + [False], NO_FLIP, CALIB_NEG)
        assert command == "LLA115200B17300C17850D115200E14575F16625T00S50\n"

    def test_direction_bit(self):
        # joint_dirs equal to calib_dirs gives direction bit 0
        command = frame_home_command([True] + [False] * 6, [True] + [False] * 6, CALIB_NEG, speed=30)
        assert command == "LLA015200B00C00D00E00F00T00S30\n"

    def test_echo(self):
        assert frame_echo_command("Test") == "TMTest\n"


class TestRelativeDeltas:
    """Test cases for relative_deltas."""

    def test_offsets_by_limit_switch(self):
        deltas = relative_deltas([100, 0, 0, 0, 0, 0, 0], [50, 0, 0, 0, 0, 0, 0], [10, 20, 0, 0, 0, 0, 0])
        assert deltas == [60, 20, 0, 0, 0, 0, 0]

    def test_whole_number_targets_only(self):
        with pytest.raises(ValueError):
            relative_deltas([100.9, 0, 0, 0, 0, 0, 0], [0] * 7, [0] * 7)
        assert relative_deltas([np.int64(5), 2.0, 0, 0, 0, 0, 0], [0] * 7, [0] * 7)[:2] == [5, 2]

    def test_track_delta_is_zero(self):
        assert relative_deltas([0] * 6 + [999], [0] * 7, [0] * 7)[6] == 0
