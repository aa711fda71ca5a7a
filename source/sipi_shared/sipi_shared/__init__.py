"""SIPI rover bridge core: wire protocol, telemetry aggregation, drive limiting."""

from sipi_shared.constants import *  # noqa: F401,F403
from sipi_shared.protocol import (  # noqa: F401
    Tag,
    Joint,
    ProtocolRecord,
    JointAngleCommand,
    MotorDutyCommand,
    parse_float,
    decode_line,
    decode_lines,
    encode_poll,
    encode_drive,
    encode_joint_angle,
)
from sipi_shared.telemetry import (  # noqa: F401
    StateAggregator,
    TelemetrySnapshot,
    OdometryState,
    quaternion_from_rpy,
    quaternion_from_yaw,
)
from sipi_shared.drive_control import (  # noqa: F401
    CommandLimiter,
    VelocitySetpoint,
    MIXING_MATRIX,
    limit,
)
