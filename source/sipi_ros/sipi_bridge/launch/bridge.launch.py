"""Launch file for the sipi_bridge abridge node."""

from launch import LaunchDescription
from launch.actions import DeclareLaunchArgument
from launch.substitutions import LaunchConfiguration
from launch_ros.actions import Node


def generate_launch_description():
    return LaunchDescription([
        DeclareLaunchArgument(
            "device",
            default_value="/dev/ttyUSB0",
            description="Serial port of the rover Arduino",
        ),
        DeclareLaunchArgument(
            "robot_name",
            default_value="",
            description="Topic prefix; empty uses the host name",
        ),

        Node(
            package="sipi_bridge",
            executable="abridge",
            name="abridge",
            namespace="",
            output="screen",
            parameters=[
                {
                    "device": LaunchConfiguration("device"),
                    "robot_name": LaunchConfiguration("robot_name"),
                },
            ],
            remappings=[],
        ),
    ])
