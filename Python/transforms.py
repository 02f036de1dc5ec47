"""
Transforms Module - Contains code for:
- Homogeneous transforms built from one row of Denavit-Hartenberg parameters
- Chaining transforms with an accumulator
- Rotation matrix to quaternion conversion
- Angular distance between two orientations given as quaternions

All angles are in radians and all lengths are in millimetres.
"""
import numpy as np


def dh_matrix(theta, alpha, a, d):
    """
    A = dh_matrix(theta, alpha, a, d)
    Description:
    Builds the 4x4 homogeneous transform from link i-1 to link i for one set of
    standard DH parameters.

    Parameters:
    theta - float, joint angle about the previous z axis (offset already applied)
    alpha - float, link twist about the new x axis
    a - float, link length along the new x axis
    d - float, link offset along the previous z axis

    Returns:
    A - 4x4 numpy array
    """
    cth = np.cos(theta)
    sth = np.sin(theta)
    cal = np.cos(alpha)
    sal = np.sin(alpha)

    return np.array(
        [[cth, -sth * cal, sth * sal, a * cth],
         [sth, cth * cal, -cth * sal, a * sth],
         [0.0, sal, cal, d],
         [0.0, 0.0, 0.0, 1.0]])


def chain(matrices):
    """
    T = chain(matrices)
    Description:
    Post-multiplies each matrix onto an identity accumulator, in order.

    Returns:
    T - 4x4 numpy array
    """
    T = np.eye(4)
    for A in matrices:
        T = T @ A
    return T


def matrix_to_quaternion(R):
    """
    qw, qx, qy, qz = matrix_to_quaternion(R)
    Description:
    Converts the rotation part of R (a 3x3 or 4x4 array) to a quaternion using
    the trace method. When the trace is not positive, the branch of the largest
    diagonal element is used so the square root stays well conditioned; ties go
    to the first of them. Signs match scipy.spatial.transform.Rotation.as_quat,
    which keeps the component of the chosen branch positive.

    Returns:
    tuple of 4 floats (qw, qx, qy, qz)
    """
    m = np.asarray(R, dtype=float)
    tr = m[0, 0] + m[1, 1] + m[2, 2]
    largest = int(np.argmax([m[0, 0], m[1, 1], m[2, 2]]))

    if tr > 0:
        s = np.sqrt(tr + 1.0) * 2.0
        qw = 0.25 * s
        qx = (m[2, 1] - m[1, 2]) / s
        qy = (m[0, 2] - m[2, 0]) / s
        qz = (m[1, 0] - m[0, 1]) / s
    elif largest == 0:
        s = np.sqrt(1.0 + m[0, 0] - m[1, 1] - m[2, 2]) * 2.0
        qw = (m[2, 1] - m[1, 2]) / s
        qx = 0.25 * s
        qy = (m[0, 1] + m[1, 0]) / s
        qz = (m[0, 2] + m[2, 0]) / s
    elif largest == 1:
        s = np.sqrt(1.0 + m[1, 1] - m[0, 0] - m[2, 2]) * 2.0
        qw = (m[0, 2] - m[2, 0]) / s
        qx = (m[0, 1] + m[1, 0]) / s
        qy = 0.25 * s
        qz = (m[2, 1] + m[1, 2]) / s
    else:
        s = np.sqrt(1.0 + m[2, 2] - m[0, 0] - m[1, 1]) * 2.0
        qw = (m[1, 0] - m[0, 1]) / s
        qx = (m[0, 2] + m[2, 0]) / s
        qy = (m[2, 1] + m[1, 2]) / s
        qz = 0.25 * s

    return float(qw), float(qx), float(qy), float(qz)


def quaternion_angle(q1, q2):
    """
    Geodesic angle (radians) between two unit quaternions given as (qw, qx, qy, qz).
    q and -q describe the same rotation, so the result is in [0, pi].
    """
    dot = float(np.dot(q1, q2))
    return float(np.arccos(np.clip(2.0 * dot * dot - 1.0, -1.0, 1.0)))


def quaternion_norm(q):
    return float(np.linalg.norm(q))
