"""Tests for sipi_shared.telemetry.

Covers record routing, odometry accumulation, unit scaling and the
quaternion helpers.
"""

import math

import pytest


@pytest.fixture
def aggregator():
    from sipi_shared.telemetry import StateAggregator
    return StateAggregator()


@pytest.fixture
def feed(aggregator):
    """Decode a line and apply it, returning the aggregator."""
    from sipi_shared.protocol import decode_line

    def _feed(*lines, stamp=1.0):
        for line in lines:
            record = decode_line(line, stamp)
            if record is not None:
                aggregator.apply(record)
        return aggregator

    return _feed


class TestSonar:
    def test_left_range_scaled_to_meters(self, feed):
        snap = feed("USL,1,150.0\n", stamp=3.0).snapshot()
        assert snap.sonar_left.range == pytest.approx(1.5)
        assert snap.sonar_left.stamp == 3.0

    def test_each_sensor_routed_separately(self, feed):
        snap = feed("USL,1,100", "USC,1,200", "USR,1,300").snapshot()
        assert snap.sonar_left.range == pytest.approx(1.0)
        assert snap.sonar_center.range == pytest.approx(2.0)
        assert snap.sonar_right.range == pytest.approx(3.0)

    def test_range_replaced_not_accumulated(self, feed):
        snap = feed("USC,1,100", "USC,1,50").snapshot()
        assert snap.sonar_center.range == pytest.approx(0.5)


class TestOdometry:
    def test_position_accumulates(self, feed):
        odom = feed("ODOM,1,10.0,0,0,0,0,0", "ODOM,1,5.0,0,0,0,0,0").odometry()
        assert odom.x == pytest.approx(0.15)

    def test_y_accumulates_with_sign(self, feed):
        odom = feed("ODOM,1,0,20,0,0,0,0", "ODOM,1,0,-5,0,0,0,0").odometry()
        assert odom.y == pytest.approx(0.15)

    def test_heading_and_velocity_replaced(self, feed):
        odom = feed(
            "ODOM,1,0,0,1.0,30,10,0.4",
            "ODOM,1,0,0,0.5,20,0,0.1",
        ).odometry()
        assert odom.yaw == 0.5
        assert odom.linear_x == pytest.approx(0.2)
        assert odom.linear_y == 0.0
        assert odom.angular_z == pytest.approx(0.1)
        assert odom.z == 0.0

    def test_orientation_from_yaw(self, feed):
        odom = feed(f"ODOM,1,0,0,{math.pi},0,0,0").odometry()
        assert odom.orientation.z == pytest.approx(1.0)
        assert odom.orientation.w == pytest.approx(0.0, abs=1e-9)

    def test_reset(self, feed, aggregator):
        feed("ODOM,1,10,10,0,0,0,0")
        aggregator.reset_odometry()
        odom = aggregator.odometry()
        assert (odom.x, odom.y) == (0.0, 0.0)


class TestImu:
    def test_fields(self, feed):
        imu = feed("IMU,1,1.5,9.9,-9.8,0.1,0.2,0.3,0,0,0").snapshot().imu
        assert imu.linear_acceleration == (1.5, 0.0, -9.8)
        assert imu.angular_velocity == (0.1, 0.2, 0.3)

    def test_orientation_from_rpy(self, feed):
        from sipi_shared.telemetry import quaternion_from_rpy
        imu = feed("IMU,1,0,0,0,0,0,0,0.1,0.2,0.3").snapshot().imu
        assert (imu.roll, imu.pitch, imu.yaw) == (0.1, 0.2, 0.3)
        assert imu.orientation == quaternion_from_rpy(0.1, 0.2, 0.3)


class TestJointAngles:
    def test_finger_roll(self, feed):
        snap = feed("GRF,1,1.0", stamp=7.0).snapshot()
        assert snap.finger.roll == 1.0
        assert snap.finger.stamp == 7.0
        assert snap.finger.orientation.x == pytest.approx(math.sin(0.5))
        assert snap.finger.orientation.y == 0.0
        assert snap.finger.orientation.z == 0.0

    def test_wrist_does_not_touch_finger(self, feed):
        snap = feed("GRW,1,0.3").snapshot()
        assert snap.wrist.roll == 0.3
        assert snap.finger.roll == 0.0


class TestDiscardedInput:
    @pytest.mark.parametrize("line", [
        "USL,0,150",
        "USL,1",
        "ODOM,1,10,0",
        "IMU,1,1,2",
        "XYZ,1,5",
        "",
    ])
    def test_no_mutation(self, feed, aggregator, line):
        before = aggregator.snapshot()
        feed(line)
        assert aggregator.snapshot() == before

    def test_invalid_record_ignored(self, aggregator):
        from sipi_shared.protocol import ProtocolRecord, Tag
        before = aggregator.snapshot()
        aggregator.apply(ProtocolRecord(Tag.USL, False, (150.0,), 1.0))
        assert aggregator.snapshot() == before


class TestSnapshots:
    def test_snapshot_is_a_copy(self, feed, aggregator):
        snap = feed("ODOM,1,10,0,0,0,0,0").snapshot()
        snap.odometry.x = 99.0
        assert aggregator.odometry().x == pytest.approx(0.1)

    def test_reads_are_idempotent(self, feed, aggregator):
        feed("USL,1,150", "ODOM,1,10,0,0,0,0,0")
        assert aggregator.snapshot() == aggregator.snapshot()


class TestQuaternions:
    def test_identity(self):
        from sipi_shared.telemetry import quaternion_from_rpy
        q = quaternion_from_rpy(0.0, 0.0, 0.0)
        assert tuple(q) == pytest.approx((0.0, 0.0, 0.0, 1.0))

    def test_yaw_matches_rpy(self):
        from sipi_shared.telemetry import quaternion_from_rpy, quaternion_from_yaw
        for yaw in (-1.0, 0.3, math.pi / 2):
            assert tuple(quaternion_from_yaw(yaw)) == pytest.approx(
                tuple(quaternion_from_rpy(0.0, 0.0, yaw))
            )

    def test_unit_norm(self):
        from sipi_shared.telemetry import quaternion_from_rpy
        q = quaternion_from_rpy(0.4, -1.1, 2.5)
        assert math.sqrt(sum(c * c for c in q)) == pytest.approx(1.0)

    def test_pure_pitch(self):
        from sipi_shared.telemetry import quaternion_from_rpy
        q = quaternion_from_rpy(0.0, math.pi / 2, 0.0)
        assert q.y == pytest.approx(math.sin(math.pi / 4))
        assert q.w == pytest.approx(math.cos(math.pi / 4))
