from setuptools import setup, find_packages
import os
from glob import glob

package_name = "sipi_bridge"

setup(
    name=package_name,
    version="0.1.0",
    packages=find_packages(exclude=["test"]),
    data_files=[
        ("share/ament_index/resource_index/packages", ["resource/" + package_name]),
        ("share/" + package_name, ["package.xml"]),
        (os.path.join("share", package_name, "launch"), glob("launch/*.py")),
    ],
    install_requires=[
        "setuptools",
        "pyserial",
        "numpy",
    ],
    zip_safe=True,
    maintainer="rover",
    maintainer_email="rover@sipi-rover",
    description="Serial bridge between the SIPI rover Arduino and ROS2",
    license="MIT",
    tests_require=["pytest"],
    entry_points={
        "console_scripts": [
            "abridge = sipi_bridge.abridge_node:main",
        ],
    },
)
