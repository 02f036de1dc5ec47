# ar3_mock.py - Simulated AR3 for tests and dry runs.
# Same capability set and limit checks as AR3Interpreter, with no serial port: commands
# are framed exactly as they would be sent and kept in a history instead of being written.

import logging

from ar3_arm import AR3Arm
from kinematics import AR3_DH_PARAMS

logger = logging.getLogger(__name__)


class MockAR3(AR3Arm):
    """
    In-memory AR3. Always ready, echo always succeeds.
    sent holds every framed command in order, for inspection.
    """

    def __init__(self, joint_dirs=None, calib_dirs=None, limit_switch_steps=None, dh=AR3_DH_PARAMS):
        super().__init__(joint_dirs, calib_dirs, limit_switch_steps, dh)
        self.sent = []

    def echo(self):
        return None

    def _transmit_move(self, command: str):
        logger.debug(f"(mock) -> {command!r}")
        self.sent.append(command)

    def _transmit_home(self, command: str):
        logger.debug(f"(mock) -> {command!r}")
        self.sent.append(command)


def connect_mock(joint_dirs=None, calib_dirs=None, limit_switch_steps=None) -> MockAR3:
    return MockAR3(joint_dirs, calib_dirs, limit_switch_steps)
