"""Periodic driver for the bridge, independent of ROS.

The node owns the timers and the message types; everything that happens on
a tick lives here so it can be exercised with a fake link and plain
callables.

Threading model: the node runs on a single-threaded executor, so ticks and
command callbacks never overlap.  The limiter and aggregator still guard
their own state with locks in case a multi-threaded executor is used.
Serial I/O is never performed while either lock is held.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from sipi_shared.constants import MAX_CONSECUTIVE_FAILURES
from sipi_shared.drive_control import CommandLimiter
from sipi_shared.protocol import (
    Joint,
    JointAngleCommand,
    decode_line,
    encode_drive,
    encode_joint_angle,
    encode_poll,
)
from sipi_shared.telemetry import StateAggregator, TelemetrySnapshot

from sipi_bridge.serial_link import SerialLinkError


@dataclass
class BridgeContext:
    """All mutable bridge state, passed explicitly instead of living in globals."""

    aggregator: StateAggregator = field(default_factory=StateAggregator)
    limiter: CommandLimiter = field(default_factory=CommandLimiter)
    mode: int = 0


class BridgeScheduler:
    """Telemetry/command tick and heartbeat tick for one microcontroller.

    Args:
        link: Transport with ``send(text)``, ``read_lines()`` and ``close()``.
        context: Shared bridge state.
        publish_state: Called with a ``TelemetrySnapshot`` after every tick.
        publish_heartbeat: Called with no arguments on every heartbeat.
        logger: Anything with ``debug/info/warning/error`` (rclpy or stdlib).
        clock: Returns the decode timestamp in seconds.
    """

    def __init__(
        self,
        link,
        context: BridgeContext,
        publish_state: Callable[[TelemetrySnapshot], None],
        publish_heartbeat: Callable[[], None],
        logger=None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._link = link
        self.context = context
        self._publish_state = publish_state
        self._publish_heartbeat = publish_heartbeat
        self._logger = logger if logger is not None else logging.getLogger(__name__)
        self._clock = clock

        self.consecutive_failures = 0
        self.total_errors = 0
        self.discarded_lines = 0

    # ==================================================================
    # Timer callbacks
    # ==================================================================

    def telemetry_tick(self) -> Optional[TelemetrySnapshot]:
        """Poll, decode, aggregate, drive, publish.  Returns the published snapshot."""
        aggregator = self.context.aggregator
        limiter = self.context.limiter

        try:
            self._link.send(encode_poll())
            lines = self._link.read_lines()
        except SerialLinkError as e:
            self._handle_serial_failure(f"Telemetry poll failed: {e}")
            return None

        stamp = self._clock()
        for line in lines:
            record = decode_line(line, stamp)
            if record is None:
                if line.strip():
                    self.discarded_lines += 1
                    self._logger.debug(f"Discarded telemetry line: {line!r}")
                continue
            aggregator.apply(record)

        duty = limiter.compute_motor_duty(aggregator.odometry(), limiter.setpoint)
        try:
            self._link.send(encode_drive(duty))
        except SerialLinkError as e:
            self._handle_serial_failure(f"Drive command failed: {e}")
            return None

        self.consecutive_failures = 0
        snapshot = aggregator.snapshot()
        self._publish_state(snapshot)
        return snapshot

    def heartbeat_tick(self) -> None:
        self._publish_heartbeat()

    # ==================================================================
    # Command callbacks
    # ==================================================================

    def on_velocity_command(self, linear: float, angular: float) -> None:
        """Store a new setpoint.  Applied on the next telemetry tick."""
        self.context.limiter.set_setpoint(linear, angular)

    def on_joint_angle(self, joint: Joint, angle: float) -> bool:
        """Send a joint angle straight to the firmware.  Returns True if sent."""
        command = JointAngleCommand(joint=joint, angle=angle)
        try:
            self._link.send(encode_joint_angle(command))
        except SerialLinkError as e:
            self._logger.warning(f"{joint.name.lower()} command failed: {e}")
            self.total_errors += 1
            return False
        return True

    def on_mode(self, mode: int) -> None:
        self.context.mode = int(mode) & 0xFF

    def shutdown(self) -> None:
        """Stop the motors and release the port."""
        try:
            self._link.send(encode_drive(CommandLimiter.stop_command()))
        except SerialLinkError as e:
            self._logger.warning(f"Could not stop motors on shutdown: {e}")
        self._link.close()

    # ==================================================================
    # Helpers
    # ==================================================================

    def _handle_serial_failure(self, msg: str) -> None:
        """Count the failure; the next tick retries the full poll cycle."""
        self.consecutive_failures += 1
        self.total_errors += 1
        self._logger.warning(
            f"{msg} (consecutive failures: {self.consecutive_failures})"
        )
        if self.consecutive_failures == MAX_CONSECUTIVE_FAILURES:
            self._logger.error(
                f"{MAX_CONSECUTIVE_FAILURES} consecutive serial failures -- "
                "check the microcontroller connection."
            )
