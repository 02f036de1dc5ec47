"""
Shared fixtures for the AR3 tests.
"""

import os
import sys
import time

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'Python'))

from ar3_interpreter import AR3Interpreter  # noqa: E402
from ar3_mock import MockAR3  # noqa: E402


class FakeSerial:
    """
    Stand-in for serial.Serial. Records every write and answers each TM command
    with echo_reply. Anything queued in pending is returned by read().
    """

    def __init__(self, echo_reply=b"Test\n\r\n", is_open=True, delay=0.0):
        self.echo_reply = echo_reply
        self.delay = delay
        self.written = []
        self.pending = b""
        self.input_resets = 0
        self.output_resets = 0
        self.is_open = is_open
        self.fail_writes = False

    def write(self, data):
        if self.fail_writes:
            raise OSError("device disconnected")
        if self.delay:
            time.sleep(self.delay)
        self.written.append(data)
        if data.startswith(b"TM"):
            self.pending += self.echo_reply
        elif data.startswith(b"MJ") or data.startswith(b"LL"):
            self.pending += b"Done\r\n"
        return len(data)

    @property
    def in_waiting(self):
        return len(self.pending)

    def read(self, size=1):
        data, self.pending = self.pending[:size], self.pending[size:]
        return data

    def read_until(self, expected=b"\n", size=None):
        end = self.pending.find(expected)
        if end < 0:
            end = len(self.pending)
        else:
            end += len(expected)
        if size is not None:
            end = min(end, size)
        return self.read(end)

    def reset_input_buffer(self):
        self.input_resets += 1
        self.pending = b""

    def reset_output_buffer(self):
        self.output_resets += 1

    def open(self):
        self.is_open = True

    def close(self):
        self.is_open = False


@pytest.fixture
def fake_serial():
    return FakeSerial()


@pytest.fixture
def arm(fake_serial):
    """Interpreter that has completed its startup handshake, with the startup bytes cleared."""
    interpreter = AR3Interpreter(fake_serial)
    interpreter.start()
    fake_serial.written.clear()
    return interpreter


@pytest.fixture
def mock_arm():
    return MockAR3()
