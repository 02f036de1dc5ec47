# ar3_interpreter.py - Serial interpreter for the AR3 robotic arm.
# Talks to the AR3's microcontroller over its ASCII protocol:
#   - TM<payload>\n   echo, used as the readiness handshake after every move
#   - MJ...\n         relative move of all axes with a trapezoidal motion profile
#   - LL...\n         drive selected axes to their limit switches (calibration)
# The firmware has no encoders and no completion message, so a successful call means
# "accepted on the wire and the echo came back", not "motion finished".
# Startup: UNOPENED -> CONFIGURED (port open, 115200 8N1) -> FLUSHED -> READY (echo ok).
# Concept: Single owner of the serial port; a lock serializes every command with its
#          handshake so no other bytes are interleaved on the wire.

import argparse
import enum
import json
import logging
import math
import time

import serial

from ar3_arm import AR3Arm
from ar3_commands import frame_echo_command
from ar3_config import (BAUD_RATE, DEFAULT_PORT, ECHO_PAYLOAD, READ_SIZE, SETTLE_TIME, TIMEOUT,
                        ArmConfig, load_config)
from ar3_errors import AR3Error, ArmIOError, ArmNotReady, HandshakeFailure
from kinematics import AR3_DH_PARAMS, Pose

logger = logging.getLogger(__name__)

# The firmware sends the echo back followed by \n\r\n
ECHO_TERMINATOR = b"\n\r\n"


class ConnectionState(enum.Enum):
    UNOPENED = 'unopened'
    CONFIGURED = 'configured'
    FLUSHED = 'flushed'
    READY = 'ready'
    CLOSED = 'closed'


def open_serial(port: str, baud_rate: int = BAUD_RATE, timeout: float = TIMEOUT) -> serial.Serial:
    """Opens the controller's serial port: 8 data bits, no parity, 1 stop bit, no flow control."""
    try:
        return serial.Serial(
            port=port,
            baudrate=baud_rate,
            bytesize=serial.EIGHTBITS,
            parity=serial.PARITY_NONE,
            stopbits=serial.STOPBITS_ONE,
            timeout=timeout,
            xonxoff=False,
            rtscts=False,
            dsrdtr=False,
        )
    except (serial.SerialException, OSError) as e:
        raise ArmIOError(f"Failed to open serial port {port}: {e}") from e


def parse_echo_response(raw: bytes) -> str:
    """
    Extracts the echoed payload from a raw TM response.
    The response is rendered as a quoted, escaped string and the payload is what sits
    between the opening quote and the trailing \\n\\r\\n" (7 characters).
    """
    quoted = json.dumps(raw.decode('latin-1'))
    return quoted[1:len(quoted) - 7]


class AR3Interpreter(AR3Arm):
    """
    AR3 arm connected through a byte channel with write/read/flush (a serial.Serial in
    practice). Use connect() to open the port and run the startup handshake.
    """

    def __init__(self, ser, joint_dirs=None, calib_dirs=None, limit_switch_steps=None, dh=AR3_DH_PARAMS):
        super().__init__(joint_dirs, calib_dirs, limit_switch_steps, dh)
        self.ser = ser
        # serial.Serial() without a port comes back closed; start() opens it
        self.state = ConnectionState.CONFIGURED if ser.is_open else ConnectionState.UNOPENED

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ----- channel -----

    def _write(self, command: str):
        logger.debug(f"-> {command!r}")
        try:
            self.ser.write(command.encode('ascii'))
        except (serial.SerialException, OSError) as e:
            raise ArmIOError(f"Failed to write {command.strip()!r}: {e}") from e

    def _read_buffer(self) -> bytes:
        """
        Reads whatever the controller has sent, up to READ_SIZE bytes.
        Blocks for the first byte (up to the port timeout), then takes what is waiting.
        """
        try:
            data = self.ser.read(1)
            if data:
                waiting = self.ser.in_waiting
                if waiting:
                    data += self.ser.read(min(waiting, READ_SIZE - 1))
        except (serial.SerialException, OSError) as e:
            raise ArmIOError(f"Failed to read from controller: {e}") from e
        logger.debug(f"<- {data!r}")
        return data

    def open(self):
        """Opens a port handed over closed. Enters CONFIGURED."""
        with self.lock:
            if self.state != ConnectionState.UNOPENED:
                return
            try:
                self.ser.open()
            except (serial.SerialException, OSError) as e:
                raise ArmIOError(f"Failed to open serial port: {e}") from e
            self.state = ConnectionState.CONFIGURED

    def flush(self):
        """Discards bytes received but not read, and bytes written but not sent."""
        try:
            self.ser.reset_input_buffer()
            self.ser.reset_output_buffer()
        except (serial.SerialException, OSError) as e:
            raise ArmIOError(f"Failed to flush serial buffers: {e}") from e
        if self.state == ConnectionState.CONFIGURED:
            self.state = ConnectionState.FLUSHED

    def start(self):
        """
        Opens the port if needed, flushes stale power-on bytes and performs the echo
        handshake. Enters READY.
        """
        with self.lock:
            if self.state == ConnectionState.CLOSED:
                raise ArmNotReady("Serial connection is closed")
            self.open()
            self.flush()
            self.echo()
            self.state = ConnectionState.READY
            logger.info("AR3 ready")

    def close(self):
        with self.lock:
            if self.state == ConnectionState.CLOSED:
                return
            self.state = ConnectionState.CLOSED
            try:
                self.ser.close()
            except (serial.SerialException, OSError) as e:
                raise ArmIOError(f"Failed to close serial port: {e}") from e

    def _require_ready(self):
        if self.state != ConnectionState.READY:
            raise ArmNotReady(f"AR3 is not ready (state: {self.state.value})")

    # ----- protocol -----

    def echo(self):
        """
        Sends TM<payload> and checks the controller returns the same payload.
        Raises HandshakeFailure on a short or mismatched reply, ArmIOError on channel errors.
        """
        with self.lock:
            if self.state in (ConnectionState.UNOPENED, ConnectionState.CLOSED):
                raise ArmNotReady(f"AR3 is not connected (state: {self.state.value})")
            self._write(frame_echo_command(ECHO_PAYLOAD))
            try:
                raw = self.ser.read_until(ECHO_TERMINATOR, READ_SIZE)
            except (serial.SerialException, OSError) as e:
                raise ArmIOError(f"Failed to read echo: {e}") from e
            logger.debug(f"<- {raw!r}")

            if len(raw) < 2:
                logger.warning("Echo returned nothing. Is the serial port responding properly?")
                raise HandshakeFailure(ECHO_PAYLOAD, raw.decode('latin-1'),
                                       "Return from echo is empty. Is the serial port responding properly?")

            got = parse_echo_response(raw)
            if got != ECHO_PAYLOAD:
                logger.warning(f"Echo mismatch: expected {ECHO_PAYLOAD!r}, got {got!r}")
                raise HandshakeFailure(ECHO_PAYLOAD, got)

    def _transmit_move(self, command: str):
        self._write(command)

    def _after_move(self):
        # Pre-echo response of the move, then the handshake that stands in for completion
        self._read_buffer()
        self.echo()

    def _transmit_home(self, command: str):
        self._write(command)
        self._read_buffer()


def connect(port: str = DEFAULT_PORT, joint_dirs=None, calib_dirs=None, limit_switch_steps=None,
            baud_rate: int = BAUD_RATE, timeout: float = TIMEOUT, settle_time: float = SETTLE_TIME,
            dh=AR3_DH_PARAMS) -> AR3Interpreter:
    """
    Opens the serial port, waits for the controller to settle, flushes and handshakes.
    The port is closed again if any startup step fails.

    joint_dirs - 7 booleans, True inverts the direction bit of that axis
    calib_dirs - 7 booleans, True if the limit switch is on the negative side of the joint
    limit_switch_steps - 7 ints, directional steps from the limit switch to joint zero
    """
    ser = open_serial(port, baud_rate, timeout)
    try:
        arm = AR3Interpreter(ser, joint_dirs, calib_dirs, limit_switch_steps, dh)
    except ValueError:
        ser.close()
        raise
    try:
        time.sleep(settle_time)
        arm.start()
    except Exception:
        logger.error(f"AR3 startup on {port} failed; closing port")
        arm.close()
        raise
    logger.info(f"Connected to AR3 on {port}")
    return arm


def connect_from_config(config: ArmConfig) -> AR3Interpreter:
    return connect(config.port, config.joint_dirs, config.calib_dirs, config.limit_switch_steps,
                   config.baud_rate, config.timeout, config.settle_time)


def main(argv=None):
    """Command line access to the AR3: echo, calibrate, move by steps/joints/pose."""
    parser = argparse.ArgumentParser(description="AR3 robotic arm serial interpreter")
    parser.add_argument('--config', type=str, default=None,
                        help='JSON arm configuration (directions, limit switch offsets, port)')
    parser.add_argument('--port', type=str, default=None,
                        help=f'Serial port of the controller (default: {DEFAULT_PORT})')
    parser.add_argument('--mock', action='store_true',
                        help='Use the simulated arm instead of a serial connection')
    parser.add_argument('--verbose', action='store_true',
                        help='Enable verbose logging')

    sub = parser.add_subparsers(dest='command', required=True)
    sub.add_parser('echo', help='Test the connection')
    cal = sub.add_parser('calibrate', help='Drive J1-J6 to their limit switches')
    cal.add_argument('--speed', type=int, default=None)
    steps = sub.add_parser('move-steps', help='Move to absolute step positions J1-J6')
    steps.add_argument('steps', type=int, nargs=6)
    joints = sub.add_parser('move-joints', help='Move to absolute joint angles J1-J6')
    joints.add_argument('angles', type=float, nargs=6)
    joints.add_argument('--degrees', action='store_true', help='Angles are in degrees')
    pose = sub.add_parser('move-pose', help='Move the end effector to x y z qw qx qy qz')
    pose.add_argument('pose', type=float, nargs=7)
    sub.add_parser('status', help='Print the tracked position and pose')

    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(level=level, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    try:
        config = load_config(args.config) if args.config else ArmConfig()
    except (OSError, ValueError) as e:
        logger.error(f"Could not load arm config: {e}")
        return 1
    if args.port:
        config.port = args.port
    profile = config.profile

    try:
        if args.mock:
            from ar3_mock import MockAR3
            arm = MockAR3(config.joint_dirs, config.calib_dirs, config.limit_switch_steps)
        else:
            arm = connect_from_config(config)
    except AR3Error as e:
        logger.error(f"Could not connect: {e}")
        return 1

    try:
        if args.command == 'echo':
            arm.echo()
            print("Connected")
        elif args.command == 'calibrate':
            arm.calibrate(speed=args.speed if args.speed is not None else config.calibrate_speed)
            print("Calibrated")
        elif args.command == 'move-steps':
            arm.move_steppers(args.steps + [0], profile)
            print("Moved")
        elif args.command == 'move-joints':
            angles = [math.radians(a) for a in args.angles] if args.degrees else args.angles
            arm.move_joint_radians(angles, profile)
            print("Moved")
        elif args.command == 'move-pose':
            q = arm.move_pose(Pose(*args.pose), profile)
            print("Moved to joint angles", list(q))
        print("Steps:", arm.current_stepper_position())
        print("Pose:", arm.current_pose())
    except AR3Error as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    finally:
        if not args.mock:
            arm.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
