"""Tests for sipi_shared.protocol.

Covers the permissive numeric parser, telemetry line decoding and the
outbound command encoders.
"""

import pytest


@pytest.fixture
def decode():
    from sipi_shared.protocol import decode_line
    return decode_line


class TestParseFloat:
    @pytest.mark.parametrize("text, expected", [
        ("150.0", 150.0),
        ("-3", -3.0),
        ("+.5", 0.5),
        (" 4.25", 4.25),
        ("1e2", 100.0),
        ("5.", 5.0),
        ("12.5cm", 12.5),
        ("1e", 1.0),
    ])
    def test_leading_number(self, text, expected):
        from sipi_shared.protocol import parse_float
        assert parse_float(text) == expected

    @pytest.mark.parametrize("text", ["", "abc", "-", ".", "nan?", "\x00"])
    def test_unparsable_is_zero(self, text):
        from sipi_shared.protocol import parse_float
        assert parse_float(text) == 0.0


class TestDecodeDiscards:
    @pytest.mark.parametrize("line", [
        "",
        "USL",
        "USL,1",
        "GRF,1",
        "ODOM,1\n",
    ])
    def test_too_few_fields(self, decode, line):
        assert decode(line) is None

    @pytest.mark.parametrize("tag", ["GRF", "GRW", "IMU", "ODOM", "USL", "USC", "USR"])
    @pytest.mark.parametrize("flag", ["0", "", "2", "true", " 1"])
    def test_invalid_flag_for_every_tag(self, decode, tag, flag):
        line = ",".join([tag, flag] + ["1.0"] * 9)
        assert decode(line) is None

    def test_unknown_tag(self, decode):
        assert decode("FOO,1,2,3") is None

    def test_lowercase_tag_is_unknown(self, decode):
        assert decode("usl,1,150") is None

    def test_under_length_imu(self, decode):
        """IMU reads up to field 10; a short line must not be decoded."""
        assert decode("IMU,1,1,2,3,4,5,6,7,8") is None

    def test_under_length_odom(self, decode):
        assert decode("ODOM,1,10.0,5.0") is None


class TestDecodeRecords:
    def test_sonar_left(self, decode):
        from sipi_shared.protocol import Tag
        record = decode("USL,1,150.0\n", stamp=12.0)
        assert record.tag is Tag.USL
        assert record.valid is True
        assert record.values == (150.0,)
        assert record.stamp == 12.0

    def test_crlf_terminator(self, decode):
        from sipi_shared.protocol import Tag
        record = decode("USR,1,42\r\n")
        assert record.tag is Tag.USR
        assert record.values == (42.0,)

    def test_unparsable_field_becomes_zero(self, decode):
        record = decode("USC,1,garbage")
        assert record is not None
        assert record.values == (0.0,)

    def test_imu_payload(self, decode):
        from sipi_shared.protocol import Tag
        record = decode("IMU,1,1,2,3,4,5,6,0.1,0.2,0.3")
        assert record.tag is Tag.IMU
        assert record.values == (1.0, 2.0, 3.0, 4.0, 5.0, 6.0, 0.1, 0.2, 0.3)

    def test_extra_fields_ignored(self, decode):
        record = decode("GRF,1,0.5,99,99")
        assert record.values == (0.5,)

    def test_default_stamp_is_wall_clock(self, decode):
        import time
        before = time.time()
        record = decode("GRW,1,0.25")
        assert before <= record.stamp <= time.time()

    def test_deterministic(self, decode):
        line = "ODOM,1,10,-5,0.5,30,0,0.1"
        assert decode(line, stamp=1.0) == decode(line, stamp=1.0)

    def test_decode_lines_drops_noise(self):
        from sipi_shared.protocol import Tag, decode_lines
        chunk = "USL,1,150\ngarbage\nUSC,0,10\nODOM,1,10,0,0,0,0,0\nUS"
        records = decode_lines(chunk, stamp=0.0)
        assert [r.tag for r in records] == [Tag.USL, Tag.ODOM]

    def test_decode_lines_accepts_list(self):
        from sipi_shared.protocol import decode_lines
        assert len(decode_lines(["USL,1,1", "USR,1,2"])) == 2


class TestTag:
    def test_from_wire(self):
        from sipi_shared.protocol import Tag
        assert Tag.from_wire("ODOM") is Tag.ODOM
        assert Tag.from_wire("XYZ") is Tag.UNKNOWN
        assert Tag.from_wire("") is Tag.UNKNOWN

    def test_every_known_tag_has_field_count(self):
        from sipi_shared.protocol import FIELD_COUNTS, Tag
        known = [t for t in Tag if t is not Tag.UNKNOWN]
        assert set(FIELD_COUNTS) == set(known)
        assert all(n >= 3 for n in FIELD_COUNTS.values())


class TestEncode:
    def test_poll(self):
        from sipi_shared.protocol import encode_poll
        assert encode_poll() == "d\n"

    def test_drive(self):
        from sipi_shared.protocol import MotorDutyCommand, encode_drive
        assert encode_drive(MotorDutyCommand(-3, 120)) == "v,-3,120\n"

    def test_finger_near_zero(self):
        from sipi_shared.protocol import Joint, JointAngleCommand, encode_joint_angle
        assert encode_joint_angle(JointAngleCommand(Joint.FINGER, 0.005)) == "f,0\n"
        assert encode_joint_angle(JointAngleCommand(Joint.FINGER, -0.005)) == "f,0\n"
        assert encode_joint_angle(JointAngleCommand(Joint.FINGER, 0.0)) == "f,0\n"

    def test_finger_four_significant_digits(self):
        from sipi_shared.protocol import Joint, JointAngleCommand, encode_joint_angle
        assert encode_joint_angle(JointAngleCommand(Joint.FINGER, 1.2345678)) == "f,1.235\n"

    def test_wrist_tag(self):
        from sipi_shared.protocol import Joint, JointAngleCommand, encode_joint_angle
        assert encode_joint_angle(JointAngleCommand(Joint.WRIST, 0.5)) == "w,0.5\n"
        assert encode_joint_angle(JointAngleCommand(Joint.WRIST, -0.75)) == "w,-0.75\n"

    def test_threshold_is_exclusive(self):
        from sipi_shared.protocol import Joint, JointAngleCommand, encode_joint_angle
        assert encode_joint_angle(JointAngleCommand(Joint.WRIST, 0.01)) == "w,0.01\n"


class TestEncodeNonFinite:
    @pytest.mark.parametrize("angle", [float("nan"), float("inf"), float("-inf")])
    def test_sent_as_zero(self, angle):
        from sipi_shared.protocol import Joint, JointAngleCommand, encode_joint_angle
        assert encode_joint_angle(JointAngleCommand(Joint.WRIST, angle)) == "w,0\n"

    def test_overflowing_field_decodes_to_inf(self):
        import math
        from sipi_shared.protocol import decode_line
        record = decode_line("ODOM,1,0,0,0,1e400,0,0")
        assert math.isinf(record.values[3])
