"""
Tests for AR3 forward and inverse kinematics.
"""

import pytest
import numpy as np

from kinematics import (AR3_DH_PARAMS, DhParameters, JointAngles, Pose, SerialArm,
                        forward_kinematics, inverse_kinematics, pose_error)
from ar3_errors import KinematicsDiverged, KinematicsNumericError
from transforms import quaternion_norm

REFERENCE_Q = (10.0, 1.0, 1.0, 0.0, 0.0, 0.0)
REFERENCE_POSE = Pose(
    x=-101.74590611879692, y=-65.96805988175777, z=-322.27756822304093,
    qw=0.9369277637862541, qx=0.06040824945687102, qy=-0.20421099379003957, qz=0.2771553334491873,
)


class TestDhParameters:
    """Test cases for the DH table record."""

    def test_ar3_table(self):
        assert AR3_DH_PARAMS.a == (64.2, 305.0, 0.0, 0.0, 0.0, 0.0)
        assert AR3_DH_PARAMS.d == (169.77, 0.0, 0.0, -222.63, 0.0, -36.25)
        assert len(list(AR3_DH_PARAMS.rows())) == 6

    def test_is_immutable(self):
        with pytest.raises(AttributeError):
            AR3_DH_PARAMS.a = (0.0,) * 6

    def test_wrong_length_rejected(self):
        with pytest.raises(ValueError):
            DhParameters(theta_offsets=(0.0,) * 5, alpha=(0.0,) * 6, a=(0.0,) * 6, d=(0.0,) * 6)


class TestForwardKinematics:
    """Test cases for SerialArm.fk and forward_kinematics."""

    def test_reference_vector(self):
        pose = forward_kinematics(REFERENCE_Q)

        for got, expected in zip(pose, REFERENCE_POSE):
            assert got == pytest.approx(expected, abs=1e-9)

    def test_is_pure(self):
        arm = SerialArm()
        first = arm.pose(REFERENCE_Q)

        for _ in range(5):
            assert arm.pose(REFERENCE_Q) == first
        assert forward_kinematics(REFERENCE_Q) == first

    def test_quaternion_is_unit(self):
        rng = np.random.default_rng(7)
        arm = SerialArm()

        for _ in range(50):
            q = rng.uniform(-2 * np.pi, 2 * np.pi, 6)
            assert quaternion_norm(arm.pose(q).quaternion) == pytest.approx(1.0, abs=1e-9)

    def test_fk_index_ranges(self):
        arm = SerialArm()
        q = [0.1, -0.2, 0.3, 0.4, -0.5, 0.6]

        assert np.allclose(arm.fk(q, 3) @ arm.fk(q, [3, 6]), arm.fk(q))
        assert np.allclose(arm.fk(q, 0), np.eye(4))

    def test_fk_all_ends_at_tool(self):
        arm = SerialArm()
        q = [0.1, -0.2, 0.3, 0.4, -0.5, 0.6]

        frames = arm.fk_all(q)

        assert len(frames) == 6
        assert np.allclose(frames[0], arm.fk(q, 1))
        assert np.allclose(frames[-1], arm.fk(q))

    def test_str_lists_dh_table(self):
        text = str(SerialArm())
        assert text.startswith("Serial Arm")
        assert "305.0" in text


class TestPose:
    """Test cases for the Pose record and pose_error."""

    def test_defaults_to_identity_orientation(self):
        assert Pose() == (0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0)

    def test_from_matrix(self):
        T = np.eye(4)
        T[0:3, 3] = [1.0, 2.0, 3.0]

        pose = Pose.from_matrix(T)

        assert pose == Pose(1.0, 2.0, 3.0, 1.0, 0.0, 0.0, 0.0)
        assert np.array_equal(pose.position, [1.0, 2.0, 3.0])

    def test_error_zero_for_same_pose(self):
        assert pose_error(REFERENCE_POSE, REFERENCE_POSE) == pytest.approx(0.0, abs=1e-12)

    def test_error_from_position_offset(self):
        moved = REFERENCE_POSE._replace(x=REFERENCE_POSE.x + 2.0)
        assert pose_error(REFERENCE_POSE, moved) == pytest.approx(1.0, abs=1e-9)

    def test_joint_angles_from_array(self):
        assert JointAngles.from_array(np.zeros(6)) == JointAngles()
        with pytest.raises(ValueError):
            JointAngles.from_array([0.0] * 7)


class TestInverseKinematics:
    """Test cases for SerialArm.ik and inverse_kinematics."""

    def test_reference_round_trip_from_zeros(self):
        q, error = inverse_kinematics(REFERENCE_POSE, q0=np.zeros(6), rng=np.random.default_rng(0))

        assert isinstance(q, JointAngles)
        assert error <= 1e-6
        assert pose_error(REFERENCE_POSE, forward_kinematics(q)) <= 1e-6

    def test_random_reachable_poses(self):
        rng = np.random.default_rng(42)
        arm = SerialArm()

        for _ in range(3):
            target = arm.pose(rng.uniform(-np.pi / 2, np.pi / 2, 6))
            q, error = arm.ik(target, rng=rng)

            assert error <= 1e-6
            assert pose_error(target, arm.pose(q)) <= 1e-6

    def test_seed_at_solution_needs_no_restart(self):
        arm = SerialArm()
        q_true = [0.2, -0.3, 0.4, 0.1, 0.6, -0.2]
        target = arm.pose(q_true)

        q, error = arm.ik(target, q0=q_true, max_restarts=0)

        assert error <= 1e-6

    def test_unreachable_pose_diverges(self):
        arm = SerialArm()
        target = Pose(x=5000.0, y=0.0, z=0.0)

        with pytest.raises(KinematicsDiverged) as exc_info:
            arm.ik(target, max_restarts=2, rng=np.random.default_rng(1))

        assert exc_info.value.attempts == 2
        assert exc_info.value.best_error > 1e-6

    def test_non_finite_target_is_numeric_error(self):
        arm = SerialArm()
        target = Pose(x=float('nan'))

        with pytest.raises(KinematicsNumericError):
            arm.ik(target, max_restarts=1, rng=np.random.default_rng(1))
