"""SIPI rover bridge constants -- single source of truth for the bridge node.

These values must agree with the microcontroller firmware.  Any change to
the wire scales or command limits here has to be mirrored on the Arduino
side, otherwise odometry and motor duty will silently drift.
"""

# =============================================================================
# Serial Link
# =============================================================================

SERIAL_DEFAULT_DEVICE = "/dev/ttyUSB0"
SERIAL_BAUD_RATE = 115200
SERIAL_READ_TIMEOUT = 0.05      # seconds per read call
SERIAL_STARTUP_DELAY = 5.0      # seconds; the Arduino resets when the port opens
SERIAL_MAX_LINE_LENGTH = 256   # bytes; an unterminated fragment longer than this is noise

# =============================================================================
# Scheduling
# =============================================================================

UPDATE_INTERVAL = 0.1           # seconds between telemetry/command ticks
HEARTBEAT_INTERVAL = 2.0        # seconds between heartbeat messages

# After this many consecutive serial failures, escalate to an error log.
MAX_CONSECUTIVE_FAILURES = 10

# =============================================================================
# Command Limits
# =============================================================================

MAX_LIN_VEL_CMD = 0.3           # m/s
MAX_ANG_VEL_CMD = 0.5           # rad/s

# Experimentally determined: 180 and 255 made the chassis throw itself around
# hard enough to damage the drivetrain.
MAX_MOTOR_CMD = 120

# Proportional gain applied to the velocity error terms.
DRIVE_KP = 10.0

# Joint angles below this are sent as a literal "0" (avoids "1e-05" on the wire).
JOINT_ANGLE_EPSILON = 0.01

# =============================================================================
# Wire Units
# =============================================================================

# Odometry deltas, odometry velocities and sonar ranges arrive in centimeters.
WIRE_DISTANCE_SCALE = 100.0

# Token counts: tag + valid flag + payload.
MIN_LINE_FIELDS = 3
JOINT_FIELDS = 3
IMU_FIELDS = 11
ODOM_FIELDS = 8
SONAR_FIELDS = 3

# =============================================================================
# Frames
# =============================================================================

BASE_FRAME = "base_link"
ODOM_FRAME = "odom"
