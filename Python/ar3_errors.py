# ar3_errors.py - Exceptions raised by the AR3 kinematics and serial interpreter.
# Every failure surfaces to the caller; nothing here is retried automatically.


class AR3Error(Exception):
    """Base class for all AR3 arm errors."""


class ArmIOError(AR3Error, IOError):
    """The serial channel failed to open, write, read, flush or close."""


class ArmNotReady(AR3Error):
    """An operation was requested before the handshake completed or after close."""


class HandshakeFailure(AR3Error):
    """
    The echo round-trip returned something other than the payload sent.
    Concept: Echo is the only readiness signal the firmware offers.
    """

    def __init__(self, expected: str, got: str, message: str = None):
        self.expected = expected
        self.got = got
        if message is None:
            message = f"Failed echo to AR3. Expected {expected!r} but got {got!r}"
        super().__init__(message)


class JointOutOfRange(AR3Error, ValueError):
    """
    A requested absolute step position falls outside the software limits of a joint.
    No bytes are written and the tracked position is left as it was.
    """

    def __init__(self, axis: int, lower: int, upper: int, value: int):
        self.axis = axis
        self.lower = lower
        self.upper = upper
        self.value = value
        super().__init__(f"J{axis} out of range. Must be between {lower} and {upper}. Got {value}")

    @property
    def min(self):
        return self.lower

    @property
    def max(self):
        return self.upper

    @property
    def got(self):
        return self.value


class KinematicsDiverged(AR3Error):
    """Inverse kinematics used up its restart budget without reaching tolerance."""

    def __init__(self, attempts: int, best_error: float):
        self.attempts = attempts
        self.best_error = best_error
        super().__init__(f"Inverse kinematics failed to converge after {attempts} restarts "
                         f"(best error {best_error:.3e})")


class KinematicsNumericError(AR3Error, ArithmeticError):
    """The numerical minimizer raised or produced a non-finite objective."""
