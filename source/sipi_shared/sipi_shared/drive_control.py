"""Velocity setpoint limiting and differential-drive duty computation.

This module uses only NumPy so it can be exercised without a ROS install.
"""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Optional

import numpy as np

from sipi_shared.constants import (
    DRIVE_KP,
    MAX_ANG_VEL_CMD,
    MAX_LIN_VEL_CMD,
    MAX_MOTOR_CMD,
)
from sipi_shared.protocol import MotorDutyCommand
from sipi_shared.telemetry import OdometryState

# Mixing matrix: [linear, angular] duty terms -> [left, right] motor duty.
# Positive angular (CCW) slows the left track and speeds up the right one.
MIXING_MATRIX = np.array([
    [1, -1],    # left
    [1,  1],    # right
], dtype=np.int64)

# Per-term bound before integer conversion.  Far above any real duty, so the
# final max_motor_cmd clamp still decides the output.
_TERM_LIMIT = float(2 ** 31)


@dataclass(frozen=True)
class VelocitySetpoint:
    linear: float = 0.0     # m/s, body x
    angular: float = 0.0    # rad/s, body z


def limit(value: float, maximum: float) -> float:
    """Clamp *value* to ``[-maximum, maximum]``.  Non-finite input maps to 0.0."""
    if not math.isfinite(value):
        return 0.0
    return float(np.clip(value, -maximum, maximum))


class CommandLimiter:
    """Holds the current velocity setpoint and turns it into motor duty.

    Args:
        max_linear: Linear velocity bound (m/s).
        max_angular: Angular velocity bound (rad/s).  Older firmware bridges
            clamped angular velocity against the linear bound; pass
            ``max_angular=max_linear`` to reproduce that behaviour.
        max_motor_cmd: Largest duty magnitude ever sent to the motors.
        kp: Proportional gain on the velocity error.
    """

    def __init__(
        self,
        max_linear: float = MAX_LIN_VEL_CMD,
        max_angular: float = MAX_ANG_VEL_CMD,
        max_motor_cmd: int = MAX_MOTOR_CMD,
        kp: float = DRIVE_KP,
    ) -> None:
        self.max_linear = max_linear
        self.max_angular = max_angular
        self.max_motor_cmd = max_motor_cmd
        self.kp = kp
        self._lock = threading.Lock()
        self._setpoint = VelocitySetpoint()

    @property
    def setpoint(self) -> VelocitySetpoint:
        with self._lock:
            return self._setpoint

    def set_setpoint(self, linear: float, angular: float) -> VelocitySetpoint:
        """Clamp and store a new setpoint, replacing any previous one."""
        setpoint = VelocitySetpoint(
            linear=limit(linear, self.max_linear),
            angular=limit(angular, self.max_angular),
        )
        with self._lock:
            self._setpoint = setpoint
        return setpoint

    def compute_motor_duty(
        self,
        odometry: OdometryState,
        setpoint: Optional[VelocitySetpoint] = None,
    ) -> MotorDutyCommand:
        """Proportional duty from the error between observed and target velocity.

        Each error term is scaled by ``kp`` and truncated toward zero before
        mixing, then both sides are clamped to ``max_motor_cmd``.
        """
        if setpoint is None:
            setpoint = self.setpoint
        err_linear = odometry.linear_x - setpoint.linear
        err_angular = odometry.angular_z - setpoint.angular

        # Bounded in float space: telemetry may carry inf, nan or values
        # beyond int64.
        terms = np.nan_to_num(
            np.array([err_linear, err_angular], dtype=np.float64) * self.kp,
            nan=0.0, posinf=_TERM_LIMIT, neginf=-_TERM_LIMIT,
        )
        terms = np.trunc(np.clip(terms, -_TERM_LIMIT, _TERM_LIMIT)).astype(np.int64)
        left, right = np.clip(MIXING_MATRIX @ terms,
                              -self.max_motor_cmd, self.max_motor_cmd)
        return MotorDutyCommand(left=int(left), right=int(right))

    @staticmethod
    def stop_command() -> MotorDutyCommand:
        return MotorDutyCommand(left=0, right=0)
