"""Aggregated rover telemetry, built up from decoded protocol records.

The aggregator is the only writer of telemetry state.  Readers get copies
via ``odometry()`` / ``snapshot()``, so publishing never races with the
next tick's updates.
"""

from __future__ import annotations

import copy
import math
import threading
from dataclasses import dataclass, field
from typing import NamedTuple

from sipi_shared.constants import WIRE_DISTANCE_SCALE
from sipi_shared.protocol import ProtocolRecord, Tag


class Quaternion(NamedTuple):
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0


def quaternion_from_rpy(roll: float, pitch: float, yaw: float) -> Quaternion:
    """Fixed-axis roll/pitch/yaw (radians) to a unit quaternion, tf convention."""
    cr, sr = math.cos(roll / 2.0), math.sin(roll / 2.0)
    cp, sp = math.cos(pitch / 2.0), math.sin(pitch / 2.0)
    cy, sy = math.cos(yaw / 2.0), math.sin(yaw / 2.0)
    return Quaternion(
        x=sr * cp * cy - cr * sp * sy,
        y=cr * sp * cy + sr * cp * sy,
        z=cr * cp * sy - sr * sp * cy,
        w=cr * cp * cy + sr * sp * sy,
    )


def quaternion_from_yaw(yaw: float) -> Quaternion:
    return Quaternion(z=math.sin(yaw / 2.0), w=math.cos(yaw / 2.0))


@dataclass
class JointAngle:
    """Gripper joint position as reported by the servo (roll only)."""

    roll: float = 0.0
    orientation: Quaternion = field(default_factory=Quaternion)
    stamp: float = 0.0


@dataclass
class InertialSample:
    # Accel y is never populated from the wire; the firmware's y channel is unreliable.
    linear_acceleration: tuple = (0.0, 0.0, 0.0)
    angular_velocity: tuple = (0.0, 0.0, 0.0)
    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0
    orientation: Quaternion = field(default_factory=Quaternion)
    stamp: float = 0.0


@dataclass
class OdometryState:
    """Dead-reckoned pose and body velocity.

    ``x``/``y`` accumulate the per-poll displacement deltas reported by the
    firmware; heading and velocities are replaced on every update.
    """

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    yaw: float = 0.0
    orientation: Quaternion = field(default_factory=Quaternion)
    linear_x: float = 0.0
    linear_y: float = 0.0
    angular_z: float = 0.0
    stamp: float = 0.0


@dataclass
class RangeSample:
    range: float = 0.0      # meters
    stamp: float = 0.0


@dataclass
class TelemetrySnapshot:
    finger: JointAngle = field(default_factory=JointAngle)
    wrist: JointAngle = field(default_factory=JointAngle)
    imu: InertialSample = field(default_factory=InertialSample)
    odometry: OdometryState = field(default_factory=OdometryState)
    sonar_left: RangeSample = field(default_factory=RangeSample)
    sonar_center: RangeSample = field(default_factory=RangeSample)
    sonar_right: RangeSample = field(default_factory=RangeSample)


class StateAggregator:
    """Owns the latest telemetry and the integrated odometry pose.

    Thread-safe: one lock guards every read and write.  ``apply`` does no
    I/O, so holding the lock is always short.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state = TelemetrySnapshot()

    def apply(self, record: ProtocolRecord) -> None:
        """Fold one decoded record into the aggregated state."""
        if not record.valid:
            return
        handler = self._HANDLERS.get(record.tag)
        if handler is None:
            return
        with self._lock:
            handler(self, record.values, record.stamp)

    def odometry(self) -> OdometryState:
        with self._lock:
            return copy.deepcopy(self._state.odometry)

    def snapshot(self) -> TelemetrySnapshot:
        with self._lock:
            return copy.deepcopy(self._state)

    def reset_odometry(self) -> None:
        with self._lock:
            self._state.odometry = OdometryState()

    # ------------------------------------------------------------------
    # Per-tag handlers (called with the lock held)
    # ------------------------------------------------------------------

    def _apply_finger(self, values, stamp) -> None:
        self._state.finger = _joint_angle(values[0], stamp)

    def _apply_wrist(self, values, stamp) -> None:
        self._state.wrist = _joint_angle(values[0], stamp)

    def _apply_imu(self, values, stamp) -> None:
        # values: ax, ay (ignored), az, gx, gy, gz, roll, pitch, yaw
        imu = self._state.imu
        imu.linear_acceleration = (values[0], 0.0, values[2])
        imu.angular_velocity = (values[3], values[4], values[5])
        imu.roll, imu.pitch, imu.yaw = values[6], values[7], values[8]
        imu.orientation = quaternion_from_rpy(imu.roll, imu.pitch, imu.yaw)
        imu.stamp = stamp

    def _apply_odom(self, values, stamp) -> None:
        # values: dx, dy (cm), yaw (rad), vx, vy (cm/s), wz (rad/s)
        odom = self._state.odometry
        odom.x += values[0] / WIRE_DISTANCE_SCALE
        odom.y += values[1] / WIRE_DISTANCE_SCALE
        odom.z = 0.0
        odom.yaw = values[2]
        odom.orientation = quaternion_from_yaw(values[2])
        odom.linear_x = values[3] / WIRE_DISTANCE_SCALE
        odom.linear_y = values[4] / WIRE_DISTANCE_SCALE
        odom.angular_z = values[5]
        odom.stamp = stamp

    def _apply_sonar_left(self, values, stamp) -> None:
        self._state.sonar_left = _range_sample(values[0], stamp)

    def _apply_sonar_center(self, values, stamp) -> None:
        self._state.sonar_center = _range_sample(values[0], stamp)

    def _apply_sonar_right(self, values, stamp) -> None:
        self._state.sonar_right = _range_sample(values[0], stamp)

    _HANDLERS = {
        Tag.GRF: _apply_finger,
        Tag.GRW: _apply_wrist,
        Tag.IMU: _apply_imu,
        Tag.ODOM: _apply_odom,
        Tag.USL: _apply_sonar_left,
        Tag.USC: _apply_sonar_center,
        Tag.USR: _apply_sonar_right,
    }


def _joint_angle(roll: float, stamp: float) -> JointAngle:
    return JointAngle(
        roll=roll, orientation=quaternion_from_rpy(roll, 0.0, 0.0), stamp=stamp
    )


def _range_sample(wire_range: float, stamp: float) -> RangeSample:
    return RangeSample(range=wire_range / WIRE_DISTANCE_SCALE, stamp=stamp)
