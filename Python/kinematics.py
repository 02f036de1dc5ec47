"""
Kinematics Module - Contains code for:
- Forward Kinematics, from a set of DH parameters to a serial linkage arm with callable forward kinematics
- Inverse Kinematics over position and orientation, by numerical minimization with random restarts

Poses are expressed in the base frame with positions in mm and orientation as
a unit quaternion (qw, qx, qy, qz). Joint angles are radians from each joint's
calibrated zero.

AR3 updates:
- DH parameters are held in an immutable DhParameters record (theta offset, alpha, a, d per joint).
- fk accumulates per-joint transforms and Pose.from_matrix extracts position + quaternion.
- ik minimizes 0.25 * (dx^2 + dy^2 + dz^2 + drot^2) with scipy.optimize.minimize and
  restarts from random seeds until the error is below tolerance.
"""
import logging
from dataclasses import dataclass
from typing import NamedTuple, Optional, Sequence, Tuple

import numpy as np
from scipy.optimize import minimize

import transforms as tr
from ar3_errors import KinematicsDiverged, KinematicsNumericError

logger = logging.getLogger(__name__)

pi = np.pi

IK_TOLERANCE = 1e-6
IK_MAX_RESTARTS = 100
IK_METHOD = 'BFGS'


@dataclass(frozen=True)
class DhParameters:
    """Denavit-Hartenberg table of a 6 joint arm. One entry per joint in each tuple."""
    theta_offsets: Tuple[float, ...]
    alpha: Tuple[float, ...]
    a: Tuple[float, ...]
    d: Tuple[float, ...]

    def __post_init__(self):
        for name in ('theta_offsets', 'alpha', 'a', 'd'):
            values = tuple(float(v) for v in getattr(self, name))
            if len(values) != 6:
                raise ValueError(f"DH {name} needs 6 values, got {len(values)}")
            object.__setattr__(self, name, values)

    def rows(self):
        """Yields (theta_offset, alpha, a, d) for joints 1 to 6."""
        return zip(self.theta_offsets, self.alpha, self.a, self.d)


# Denavit-Hartenberg parameters of the AR3, from the AR2 Version 2.0 software
# published by Annin Robotics. The AR2 and AR3 share them.
AR3_DH_PARAMS = DhParameters(
    theta_offsets=(0.0, 0.0, -pi / 2, 0.0, 0.0, pi),
    alpha=(-pi / 2, 0.0, pi / 2, -pi / 2, pi / 2, 0.0),
    a=(64.2, 305.0, 0.0, 0.0, 0.0, 0.0),
    d=(169.77, 0.0, 0.0, -222.63, 0.0, -36.25),
)


class JointAngles(NamedTuple):
    j1: float = 0.0
    j2: float = 0.0
    j3: float = 0.0
    j4: float = 0.0
    j5: float = 0.0
    j6: float = 0.0

    @classmethod
    def from_array(cls, q):
        q = [float(v) for v in q]
        if len(q) != 6:
            raise ValueError(f"Expected 6 joint angles, got {len(q)}")
        return cls(*q)


class Pose(NamedTuple):
    """End effector position (mm) and orientation quaternion in the base frame."""
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    qw: float = 1.0
    qx: float = 0.0
    qy: float = 0.0
    qz: float = 0.0

    @classmethod
    def from_matrix(cls, T):
        qw, qx, qy, qz = tr.matrix_to_quaternion(T)
        return cls(float(T[0, 3]), float(T[1, 3]), float(T[2, 3]), qw, qx, qy, qz)

    @property
    def position(self):
        return np.array([self.x, self.y, self.z])

    @property
    def quaternion(self):
        return np.array([self.qw, self.qx, self.qy, self.qz])


def _error_from_vectors(target, current):
    dp = target[0:3] - current[0:3]
    drot = tr.quaternion_angle(target[3:7], current[3:7])
    return 0.25 * (dp[0] ** 2 + dp[1] ** 2 + dp[2] ** 2 + drot ** 2)


def pose_error(target: Pose, current: Pose) -> float:
    """
    Scalar objective used by inverse kinematics: squared position error (mm^2)
    plus the squared geodesic angle between orientations, averaged over 4 terms.
    """
    return float(_error_from_vectors(np.asarray(target, dtype=float), np.asarray(current, dtype=float)))


class dh2AFunc:
    """
    A = dh2AFunc(dh)
    Description:
    Accepts one link of dh parameters and returns a function "f" that will generate a
    homogeneous transform "A" given "q" as an input. A represents the transform from
    link i to link i+1. All AR3 joints are revolute, so q is added to the theta offset.

    Parameters:
    dh - (theta_offset, alpha, a, d) for one joint

    Returns:
    f(q) - a function that can be used to generate a 4x4 numpy matrix representing the transform from one link to the next
    """
    def __init__(self, dh):
        theta_offset, alpha, a, d = dh

        def A(q):
            return tr.dh_matrix(theta_offset + q, alpha, a, d)

        self.A = A


class SerialArm:
    """
    SerialArm - A class designed to represent a serial link robot arm

    SerialArms have frames 0 to n defined, with frame 0 located at the first joint and aligned with the robot body
    frame, and frame n located at the end of link n.
    """

    def __init__(self, dh: DhParameters = AR3_DH_PARAMS):
        """
        arm = SerialArm(dh)
        :param dh: DhParameters for the 6 revolute joints of the arm
        """
        self.dh = dh
        self.transforms = [dh2AFunc(row).A for row in dh.rows()]
        self.n = len(self.transforms)

    def __str__(self):
        dh_string = """DH PARAMS\n"""
        dh_string += """theta\t|\talpha\t|\ta\t|\td\n"""
        dh_string += """---------------------------------------\n"""
        for theta, alpha, a, d in self.dh.rows():
            dh_string += f"{theta:.4f}\t|\t{alpha:.4f}\t|\t{a}\t|\t{d}\n"
        return "Serial Arm\n" + dh_string

    def fk(self, q, index=None):
        """
            T = arm.fk(q, index=None)
            Description:
                Returns the homogeneous transform from the specified frames.
                If index is a single integer "i", returns the transform from frame 0 to frame i.
                If index is a list of two integers [i,j], returns the transform from frame i to frame j.
                Defaults to the full transform from frame 0 to frame n.

            Parameters:
            q - n length numpy array or list of joint angles (radians)
            index - None, int, or length 2 list of ints

            Returns:
            T - 4x4 numpy array, homogeneous transform
        """
        q = list(q)

        if index is None:
            index = self.n
        if isinstance(index, int):
            i = 0
            j = index
        else:
            i = index[0]
            j = index[1]

        return tr.chain(self.transforms[k](q[k]) for k in range(i, j))

    def fk_all(self, q):
        """
        Returns the n cumulative transforms from frame 0 to frame i, i = 1..n.
        """
        q = list(q)
        T = []
        T_cur = np.eye(4)
        for k in range(self.n):
            T_cur = T_cur @ self.transforms[k](q[k])
            T.append(T_cur)
        return T

    def pose(self, q) -> Pose:
        return Pose.from_matrix(self.fk(q))

    def _pose_vector(self, q):
        T = self.fk(q)
        return np.array([T[0, 3], T[1, 3], T[2, 3], *tr.matrix_to_quaternion(T)])

    def ik(self, target: Pose, q0=None, tol=IK_TOLERANCE, max_restarts=IK_MAX_RESTARTS,
           rng: Optional[np.random.Generator] = None, method=IK_METHOD):
        """
        q, error = arm.ik(target, q0=None, tol=1e-6, max_restarts=100, rng=None, method='BFGS')
        Description:
        Finds joint angles whose forward kinematics match "target" in position and orientation.
        The objective (see pose_error) is minimized from q0 first. While the result is above
        tol, a new seed is drawn with each joint uniform in [0, 360) degrees and the minimizer
        is run again. No joint limits are applied here; the step conversion and the
        interpreter's limit check take care of those.

        Parameters:
        target - Pose to reach
        q0 - seed joint angles, defaults to zeros
        tol - float, objective value considered converged
        max_restarts - int, random restarts allowed after the seeded attempt
        rng - numpy Generator for the restart seeds, defaults to a fresh default_rng()
        method - any scipy.optimize.minimize method name

        Returns:
        q - JointAngles
        error - float, objective value at q

        Raises:
        KinematicsDiverged - max_restarts exhausted
        KinematicsNumericError - the minimizer raised or returned a non-finite value
        """
        target_vec = np.asarray(target, dtype=float)
        if q0 is None:
            q = np.zeros(self.n)
        else:
            q = np.asarray(list(q0), dtype=float)
        if rng is None:
            rng = np.random.default_rng()

        def objective(qs):
            return _error_from_vectors(target_vec, self._pose_vector(qs))

        def solve(seed):
            try:
                result = minimize(objective, seed, method=method)
            except (ValueError, FloatingPointError, np.linalg.LinAlgError) as e:
                raise KinematicsNumericError(f"Minimizer failed: {e}") from e
            if not np.isfinite(result.fun):
                raise KinematicsNumericError(f"Minimizer returned a non-finite objective: {result.message}")
            return result

        result = solve(q)
        best = float(result.fun)
        count = 0
        while result.fun > tol:
            if count == max_restarts:
                logger.warning(f"IK gave up after {count} restarts, best error {best:.3e}")
                raise KinematicsDiverged(count, best)
            count += 1
            seed = np.radians(360.0 * rng.random(self.n))
            result = solve(seed)
            best = min(best, float(result.fun))

        logger.debug(f"IK converged after {count} restarts with error {result.fun:.3e}")
        return JointAngles.from_array(result.x), float(result.fun)


def forward_kinematics(thetas: Sequence[float], dh: DhParameters = AR3_DH_PARAMS) -> Pose:
    """Joint angles (radians) -> end effector Pose."""
    return SerialArm(dh).pose(thetas)


def inverse_kinematics(target: Pose, dh: DhParameters = AR3_DH_PARAMS, q0=None, **kwargs):
    """Pose -> (JointAngles, error). See SerialArm.ik for keyword arguments."""
    return SerialArm(dh).ik(target, q0=q0, **kwargs)


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    arm = SerialArm(AR3_DH_PARAMS)
    print(arm)

    q = [10.0, 1.0, 1.0, 0.0, 0.0, 0.0]
    target = arm.pose(q)
    print("Pose for q =", q, ":\n", target)

    q_sol, err = arm.ik(target)
    print("IK solution:", q_sol, "error:", err)
    print("FK of solution:", arm.pose(q_sol))
