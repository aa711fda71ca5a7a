"""Line protocol spoken by the rover's motion-control microcontroller.

Inbound telemetry (one record per ``\\n``-terminated line)::

    TAG,VALID,field2,field3,...

``TAG`` is one of GRF, GRW, IMU, ODOM, USL, USC, USR and ``VALID`` is ``1``
when the firmware trusts the reading.  Anything else on the link is noise:
partial lines after a reset, garbled bytes, readings flagged invalid.  Those
are dropped without complaint.

Outbound commands::

    d\\n               poll for a telemetry dump
    v,<left>,<right>\\n integer motor duty
    f,<angle>\\n       finger angle (radians)
    w,<angle>\\n       wrist angle (radians)

Every function here is pure; nothing raises on bad input.
"""

from __future__ import annotations

import enum
import math
import re
import time
from dataclasses import dataclass
from typing import Iterable, Optional, Union

from sipi_shared.constants import (
    IMU_FIELDS,
    JOINT_ANGLE_EPSILON,
    JOINT_FIELDS,
    MIN_LINE_FIELDS,
    ODOM_FIELDS,
    SONAR_FIELDS,
)


# ---------------------------------------------------------------------------
# Numeric fields
# ---------------------------------------------------------------------------

_LEADING_FLOAT = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def parse_float(text: str) -> float:
    """Parse the leading decimal number in *text*, or return 0.0.

    Behaves like C ``atof``: trailing garbage is ignored (``"12.5cm"`` is
    12.5) and text with no leading number yields 0.0 instead of an error.
    """
    match = _LEADING_FLOAT.match(text)
    if match is None:
        return 0.0
    return float(match.group(1))


# ---------------------------------------------------------------------------
# Inbound records
# ---------------------------------------------------------------------------

class Tag(enum.Enum):
    """Telemetry record types sent by the firmware."""

    GRF = "GRF"     # finger angle
    GRW = "GRW"     # wrist angle
    IMU = "IMU"
    ODOM = "ODOM"
    USL = "USL"     # sonar left
    USC = "USC"     # sonar center
    USR = "USR"     # sonar right
    UNKNOWN = ""

    @classmethod
    def from_wire(cls, text: str) -> "Tag":
        try:
            return cls(text)
        except ValueError:
            return cls.UNKNOWN


# Total token count each tag needs (tag + valid flag + payload).
FIELD_COUNTS = {
    Tag.GRF: JOINT_FIELDS,
    Tag.GRW: JOINT_FIELDS,
    Tag.IMU: IMU_FIELDS,
    Tag.ODOM: ODOM_FIELDS,
    Tag.USL: SONAR_FIELDS,
    Tag.USC: SONAR_FIELDS,
    Tag.USR: SONAR_FIELDS,
}

SONAR_TAGS = (Tag.USL, Tag.USC, Tag.USR)


@dataclass(frozen=True)
class ProtocolRecord:
    """One decoded telemetry line.

    ``values`` holds the payload only (the tokens after the valid flag),
    so ``values[0]`` is wire field 2.
    """

    tag: Tag
    valid: bool
    values: tuple
    stamp: float


def decode_line(line: str, stamp: Optional[float] = None) -> Optional[ProtocolRecord]:
    """Decode one telemetry line.  Returns None when the line is discarded."""
    fields = line.strip().split(",")
    if len(fields) < MIN_LINE_FIELDS or fields[1] != "1":
        return None

    tag = Tag.from_wire(fields[0])
    if tag is Tag.UNKNOWN:
        return None

    expected = FIELD_COUNTS[tag]
    if len(fields) < expected:
        return None

    values = tuple(parse_float(f) for f in fields[2:expected])
    return ProtocolRecord(
        tag=tag,
        valid=True,
        values=values,
        stamp=time.time() if stamp is None else stamp,
    )


def decode_lines(
    data: Union[str, Iterable[str]], stamp: Optional[float] = None
) -> list:
    """Decode a chunk of text (or an iterable of lines), dropping discards."""
    lines = data.split("\n") if isinstance(data, str) else data
    records = []
    for line in lines:
        record = decode_line(line, stamp)
        if record is not None:
            records.append(record)
    return records


# ---------------------------------------------------------------------------
# Outbound commands
# ---------------------------------------------------------------------------

class Joint(enum.Enum):
    """Gripper joints, valued by their single-letter wire command."""

    FINGER = "f"
    WRIST = "w"


@dataclass(frozen=True)
class JointAngleCommand:
    joint: Joint
    angle: float    # radians


@dataclass(frozen=True)
class MotorDutyCommand:
    left: int
    right: int


POLL_COMMAND = "d\n"


def encode_poll() -> str:
    return POLL_COMMAND


def encode_drive(command: MotorDutyCommand) -> str:
    return f"v,{int(command.left)},{int(command.right)}\n"


def encode_joint_angle(command: JointAngleCommand) -> str:
    """Encode a finger/wrist angle with 4 significant digits.

    Near-zero angles are sent as a bare ``0`` so the firmware never has to
    parse an exponent.  Non-finite angles are sent as ``0`` as well.
    """
    if not math.isfinite(command.angle) or abs(command.angle) < JOINT_ANGLE_EPSILON:
        return f"{command.joint.value},0\n"
    return f"{command.joint.value},{command.angle:.4g}\n"
