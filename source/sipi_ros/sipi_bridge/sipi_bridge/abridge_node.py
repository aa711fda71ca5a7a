"""Arduino bridge node for the SIPI rover.

Bridges ROS2 and the motion-control microcontroller:
  - Subscribes to ``<name>/driveControl`` (Twist; linear.x and angular.z only)
    and stores the clamped setpoint for the next tick.
  - Subscribes to ``<name>/fingerAngle/cmd`` and ``<name>/wristAngle/cmd``
    (Float32, radians) and forwards them to the Arduino immediately.
  - Subscribes to ``<name>/mode`` (UInt8).
  - Every ``update_interval`` polls the Arduino, folds the telemetry into the
    aggregated state, sends the drive duty and publishes imu, odom, sonar and
    gripper angle topics.
  - Publishes an empty ``<name>/abridge/heartbeat`` every ``heartbeat_interval``.

Threading model: single-threaded executor.  Both timers and all
subscription callbacks run on the same thread.

ALL constants from ``sipi_shared.constants``.
ALL wire handling from ``sipi_shared.protocol``.
"""

from __future__ import annotations

import socket
import time

import rclpy
from rclpy.node import Node
from rclpy.qos import DurabilityPolicy, QoSProfile
from rclpy.time import Time

from geometry_msgs.msg import Quaternion, QuaternionStamped, Twist
from nav_msgs.msg import Odometry
from sensor_msgs.msg import Imu, Range
from std_msgs.msg import Float32, String, UInt8

from sipi_shared.constants import (
    BASE_FRAME,
    HEARTBEAT_INTERVAL,
    MAX_ANG_VEL_CMD,
    MAX_LIN_VEL_CMD,
    MAX_MOTOR_CMD,
    ODOM_FRAME,
    SERIAL_BAUD_RATE,
    SERIAL_DEFAULT_DEVICE,
    SERIAL_STARTUP_DELAY,
    UPDATE_INTERVAL,
)
from sipi_shared.drive_control import CommandLimiter
from sipi_shared.protocol import Joint
from sipi_shared.telemetry import (
    InertialSample,
    JointAngle,
    OdometryState,
    RangeSample,
    TelemetrySnapshot,
)

from sipi_bridge.scheduler import BridgeContext, BridgeScheduler
from sipi_bridge.serial_link import SerialLink, SerialLinkError


class ABridgeNode(Node):
    """ROS2 node wrapping one serial-attached rover microcontroller."""

    def __init__(self) -> None:
        super().__init__("abridge")

        # ------------------------------------------------------------------
        # Parameters
        # ------------------------------------------------------------------
        self.declare_parameter("device", SERIAL_DEFAULT_DEVICE)
        self.declare_parameter("robot_name", "")
        self.declare_parameter("update_interval", UPDATE_INTERVAL)
        self.declare_parameter("heartbeat_interval", HEARTBEAT_INTERVAL)
        self.declare_parameter("max_linear_vel", MAX_LIN_VEL_CMD)
        self.declare_parameter("max_angular_vel", MAX_ANG_VEL_CMD)
        self.declare_parameter("max_motor_cmd", MAX_MOTOR_CMD)
        self.declare_parameter("startup_delay", SERIAL_STARTUP_DELAY)

        device = self.get_parameter("device").get_parameter_value().string_value
        name = self.get_parameter("robot_name").get_parameter_value().string_value
        update_interval = self.get_parameter("update_interval").get_parameter_value().double_value
        heartbeat_interval = self.get_parameter("heartbeat_interval").get_parameter_value().double_value
        max_linear = self.get_parameter("max_linear_vel").get_parameter_value().double_value
        max_angular = self.get_parameter("max_angular_vel").get_parameter_value().double_value
        max_motor_cmd = self.get_parameter("max_motor_cmd").get_parameter_value().integer_value
        startup_delay = self.get_parameter("startup_delay").get_parameter_value().double_value

        if name:
            self.get_logger().info(f"{name}: ABridge module started.")
        else:
            name = socket.gethostname()
            self.get_logger().info(f"abridge: No Name Selected. Default is: {name}")
        self._name = name

        self.get_logger().info(
            f"ABridgeNode starting: device={device} baud={SERIAL_BAUD_RATE} "
            f"rate={1.0 / update_interval:.1f}Hz"
        )

        # ------------------------------------------------------------------
        # Serial link
        # ------------------------------------------------------------------
        self._link = SerialLink(device, SERIAL_BAUD_RATE)
        try:
            self._link.open()
            self.get_logger().info(f"Arduino opened on {device}")
            time.sleep(startup_delay)
        except SerialLinkError as e:
            self.get_logger().error(f"Failed to open Arduino: {e}")

        # ------------------------------------------------------------------
        # State
        # ------------------------------------------------------------------
        self._context = BridgeContext(
            limiter=CommandLimiter(
                max_linear=max_linear,
                max_angular=max_angular,
                max_motor_cmd=max_motor_cmd,
            ),
        )
        self._scheduler = BridgeScheduler(
            self._link,
            self._context,
            publish_state=self._publish_telemetry,
            publish_heartbeat=self._publish_heartbeat,
            logger=self.get_logger(),
        )

        # ------------------------------------------------------------------
        # Publishers
        # ------------------------------------------------------------------
        latched = QoSProfile(depth=1, durability=DurabilityPolicy.TRANSIENT_LOCAL)

        self._finger_pub = self.create_publisher(
            QuaternionStamped, f"{name}/fingerAngle/prev_cmd", 10
        )
        self._wrist_pub = self.create_publisher(
            QuaternionStamped, f"{name}/wristAngle/prev_cmd", 10
        )
        self._imu_pub = self.create_publisher(Imu, f"{name}/imu", 10)
        self._odom_pub = self.create_publisher(Odometry, f"{name}/odom", 10)
        self._sonar_left_pub = self.create_publisher(Range, f"{name}/sonarLeft", 10)
        self._sonar_center_pub = self.create_publisher(Range, f"{name}/sonarCenter", 10)
        self._sonar_right_pub = self.create_publisher(Range, f"{name}/sonarRight", 10)
        self._info_log_pub = self.create_publisher(String, "/infoLog", latched)
        self._heartbeat_pub = self.create_publisher(
            String, f"{name}/abridge/heartbeat", latched
        )

        # ------------------------------------------------------------------
        # Subscribers
        # ------------------------------------------------------------------
        self._drive_sub = self.create_subscription(
            Twist, f"{name}/driveControl", self._drive_callback, 10
        )
        self._finger_sub = self.create_subscription(
            Float32, f"{name}/fingerAngle/cmd", self._finger_callback, 1
        )
        self._wrist_sub = self.create_subscription(
            Float32, f"{name}/wristAngle/cmd", self._wrist_callback, 1
        )
        self._mode_sub = self.create_subscription(
            UInt8, f"{name}/mode", self._mode_callback, 1
        )

        # ------------------------------------------------------------------
        # Timers
        # ------------------------------------------------------------------
        self._update_timer = self.create_timer(
            update_interval, self._scheduler.telemetry_tick
        )
        self._heartbeat_timer = self.create_timer(
            heartbeat_interval, self._scheduler.heartbeat_tick
        )

        self._info_log_pub.publish(String(data=f"{name}: abridge ready on {device}"))
        self.get_logger().info("ABridgeNode ready.")

    # ==================================================================
    # Subscription callbacks
    # ==================================================================

    def _drive_callback(self, msg: Twist) -> None:
        self._scheduler.on_velocity_command(msg.linear.x, msg.angular.z)

    def _finger_callback(self, msg: Float32) -> None:
        self._scheduler.on_joint_angle(Joint.FINGER, msg.data)

    def _wrist_callback(self, msg: Float32) -> None:
        self._scheduler.on_joint_angle(Joint.WRIST, msg.data)

    def _mode_callback(self, msg: UInt8) -> None:
        self._scheduler.on_mode(msg.data)

    # ==================================================================
    # Publishing
    # ==================================================================

    def _publish_telemetry(self, snapshot: TelemetrySnapshot) -> None:
        name = self._name
        self._finger_pub.publish(joint_angle_to_msg(snapshot.finger))
        self._wrist_pub.publish(joint_angle_to_msg(snapshot.wrist))
        self._imu_pub.publish(imu_to_msg(snapshot.imu, f"{name}/{BASE_FRAME}"))
        self._odom_pub.publish(odometry_to_msg(
            snapshot.odometry, f"{name}/{ODOM_FRAME}", f"{name}/{BASE_FRAME}"
        ))
        self._sonar_left_pub.publish(range_to_msg(snapshot.sonar_left))
        self._sonar_center_pub.publish(range_to_msg(snapshot.sonar_center))
        self._sonar_right_pub.publish(range_to_msg(snapshot.sonar_right))

    def _publish_heartbeat(self) -> None:
        self._heartbeat_pub.publish(String(data=""))

    def destroy_node(self) -> None:
        """Ensure motors are stopped on shutdown."""
        self.get_logger().info("Shutting down -- stopping motors.")
        self._scheduler.shutdown()
        super().destroy_node()


# ---------------------------------------------------------------------------
# Telemetry -> message conversion
# ---------------------------------------------------------------------------

def _stamp(seconds: float):
    """Wall-clock seconds to a builtin_interfaces/Time."""
    return Time(nanoseconds=int(seconds * 1e9)).to_msg()


def _quaternion_to_msg(q) -> Quaternion:
    msg = Quaternion()
    msg.x, msg.y, msg.z, msg.w = q.x, q.y, q.z, q.w
    return msg


def joint_angle_to_msg(angle: JointAngle) -> QuaternionStamped:
    msg = QuaternionStamped()
    msg.header.stamp = _stamp(angle.stamp)
    msg.quaternion = _quaternion_to_msg(angle.orientation)
    return msg


def imu_to_msg(sample: InertialSample, frame_id: str) -> Imu:
    msg = Imu()
    msg.header.stamp = _stamp(sample.stamp)
    msg.header.frame_id = frame_id
    ax, ay, az = sample.linear_acceleration
    msg.linear_acceleration.x, msg.linear_acceleration.y, msg.linear_acceleration.z = ax, ay, az
    gx, gy, gz = sample.angular_velocity
    msg.angular_velocity.x, msg.angular_velocity.y, msg.angular_velocity.z = gx, gy, gz
    msg.orientation = _quaternion_to_msg(sample.orientation)
    return msg


def odometry_to_msg(odom: OdometryState, frame_id: str, child_frame_id: str) -> Odometry:
    msg = Odometry()
    msg.header.stamp = _stamp(odom.stamp)
    msg.header.frame_id = frame_id
    msg.child_frame_id = child_frame_id
    msg.pose.pose.position.x = odom.x
    msg.pose.pose.position.y = odom.y
    msg.pose.pose.position.z = odom.z
    msg.pose.pose.orientation = _quaternion_to_msg(odom.orientation)
    msg.twist.twist.linear.x = odom.linear_x
    msg.twist.twist.linear.y = odom.linear_y
    msg.twist.twist.angular.z = odom.angular_z
    return msg


def range_to_msg(sample: RangeSample) -> Range:
    msg = Range()
    msg.header.stamp = _stamp(sample.stamp)
    msg.radiation_type = Range.ULTRASOUND
    msg.range = float(sample.range)
    return msg


def main(args=None):
    rclpy.init(args=args)
    node = ABridgeNode()
    try:
        rclpy.spin(node)
    except KeyboardInterrupt:
        pass
    finally:
        node.destroy_node()
        rclpy.try_shutdown()


if __name__ == "__main__":
    main()
