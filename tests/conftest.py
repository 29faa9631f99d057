"""Shared models and helpers for the test suite."""

from typing import Callable, List

import numpy as np
import pinocchio as pin
import pytest

from multibody_ik import Configuration
from multibody_ik.collision import DistanceQuery, SignedDistancePair
from multibody_ik.exceptions import InvalidGeometryPair

_INERTIAL = """
    <inertial>
      <origin xyz="{com}" rpy="0 0 0"/>
      <mass value="{mass}"/>
      <inertia ixx="0.01" ixy="0" ixz="0" iyy="0.01" iyz="0" izz="0.01"/>
    </inertial>"""


def _link(name: str, mass: float = 1.0, com: str = "0 0 0") -> str:
    return f'  <link name="{name}">{_INERTIAL.format(mass=mass, com=com)}\n  </link>\n'


def planar_arm_urdf() -> str:
    """Two links of length 1 rotating about z, with an end-effector frame at the tip."""
    return f"""<?xml version="1.0"?>
<robot name="planar_arm">
{_link("base")}{_link("link1", com="0.5 0 0")}{_link("link2", com="0.5 0 0")}{_link("tip", mass=0.1)}
  <joint name="joint1" type="revolute">
    <parent link="base"/>
    <child link="link1"/>
    <origin xyz="0 0 0" rpy="0 0 0"/>
    <axis xyz="0 0 1"/>
    <limit lower="-3.14159" upper="3.14159" effort="10" velocity="1"/>
  </joint>
  <joint name="joint2" type="revolute">
    <parent link="link1"/>
    <child link="link2"/>
    <origin xyz="1 0 0" rpy="0 0 0"/>
    <axis xyz="0 0 1"/>
    <limit lower="-3.14159" upper="3.14159" effort="10" velocity="1"/>
  </joint>
  <joint name="tip_joint" type="fixed">
    <parent link="link2"/>
    <child link="tip"/>
    <origin xyz="1 0 0" rpy="0 0 0"/>
  </joint>
</robot>
"""


def spatial_arm_urdf() -> str:
    """Three revolute joints about z, y and x with offsets, so that every
    constraint gradient has a non-trivial direction."""
    return f"""<?xml version="1.0"?>
<robot name="spatial_arm">
{_link("base")}{_link("link1", com="0 0 0.2")}{_link("link2", com="0.3 0 0")}{_link("link3", com="0.2 0 0")}
  <joint name="joint1" type="revolute">
    <parent link="base"/>
    <child link="link1"/>
    <origin xyz="0 0 0.1" rpy="0 0 0"/>
    <axis xyz="0 0 1"/>
    <limit lower="-3" upper="3" effort="10" velocity="1"/>
  </joint>
  <joint name="joint2" type="revolute">
    <parent link="link1"/>
    <child link="link2"/>
    <origin xyz="0 0.1 0.4" rpy="0.3 0 0"/>
    <axis xyz="0 1 0"/>
    <limit lower="-2" upper="2" effort="10" velocity="1"/>
  </joint>
  <joint name="joint3" type="revolute">
    <parent link="link2"/>
    <child link="link3"/>
    <origin xyz="0.5 0 0" rpy="0 0 0.2"/>
    <axis xyz="1 0 0"/>
    <limit lower="-2" upper="2" effort="10" velocity="1"/>
  </joint>
</robot>
"""


def continuous_arm_urdf() -> str:
    """One unbounded revolute joint about z followed by a bounded one."""
    return f"""<?xml version="1.0"?>
<robot name="continuous_arm">
{_link("base")}{_link("link1", com="0.5 0 0")}{_link("link2", com="0.5 0 0")}
  <joint name="joint1" type="continuous">
    <parent link="base"/>
    <child link="link1"/>
    <origin xyz="0 0 0" rpy="0 0 0"/>
    <axis xyz="0 0 1"/>
  </joint>
  <joint name="joint2" type="revolute">
    <parent link="link1"/>
    <child link="link2"/>
    <origin xyz="1 0 0" rpy="0 0 0"/>
    <axis xyz="0 0 1"/>
    <limit lower="-1" upper="1" effort="10" velocity="1"/>
  </joint>
</robot>
"""


def prismatic_urdf() -> str:
    return f"""<?xml version="1.0"?>
<robot name="slider">
{_link("base")}{_link("carriage")}
  <joint name="slide" type="prismatic">
    <parent link="base"/>
    <child link="carriage"/>
    <origin xyz="0 0 0" rpy="0 0 0"/>
    <axis xyz="1 0 0"/>
    <limit lower="-1" upper="1" effort="10" velocity="1"/>
  </joint>
</robot>
"""


def _sphere(radius: float, xyz: str = "0 0 0") -> str:
    return (
        f'    <collision>\n      <origin xyz="{xyz}" rpy="0 0 0"/>\n'
        f'      <geometry><sphere radius="{radius}"/></geometry>\n    </collision>\n'
    )


def planar_arm_with_spheres_urdf() -> str:
    """The planar arm with an obstacle sphere on the base and a sphere at the tip."""
    urdf = planar_arm_urdf()
    urdf = urdf.replace('<link name="base">', '<link name="base">\n' + _sphere(0.2, "2 0 0"), 1)
    return urdf.replace('<link name="tip">', '<link name="tip">\n' + _sphere(0.1), 1)


def single_body_urdf() -> str:
    return f"""<?xml version="1.0"?>
<robot name="box">
{_link("body", mass=2.0)}</robot>
"""


@pytest.fixture
def planar_arm() -> pin.Model:
    return pin.buildModelFromXML(planar_arm_urdf())


@pytest.fixture
def spatial_arm() -> pin.Model:
    return pin.buildModelFromXML(spatial_arm_urdf())


@pytest.fixture
def continuous_arm() -> pin.Model:
    return pin.buildModelFromXML(continuous_arm_urdf())


@pytest.fixture
def prismatic_model() -> pin.Model:
    return pin.buildModelFromXML(prismatic_urdf())


@pytest.fixture
def floating_body() -> pin.Model:
    return pin.buildModelFromXML(single_body_urdf(), pin.JointModelFreeFlyer())


@pytest.fixture
def floating_arm() -> pin.Model:
    return pin.buildModelFromXML(planar_arm_urdf(), pin.JointModelFreeFlyer())


def numerical_jacobian(f: Callable[[np.ndarray], np.ndarray], x: np.ndarray, h: float = 1e-6) -> np.ndarray:
    """Central finite differences of f at x, shape (len(f(x)), len(x))."""
    x = np.asarray(x, dtype=np.float64)
    columns = []
    for i in range(x.size):
        step = np.zeros_like(x)
        step[i] = h
        columns.append((np.atleast_1d(f(x + step)) - np.atleast_1d(f(x - step))) / (2.0 * h))
    return np.column_stack(columns)


class SphereDistanceQuery(DistanceQuery):
    """Spheres attached to frames of a plant, for distance constraint tests.

    Each sphere is (name, frame, center in frame, radius). Every pair of
    spheres on different joints is a collision candidate.
    """

    def __init__(self, model: pin.Model, spheres):
        self.model = model
        self.spheres = {name: (frame, np.asarray(center, dtype=float), radius) for name, frame, center, radius in spheres}
        names = list(self.spheres)
        self.pairs = [
            (names[i], names[j])
            for i in range(len(names))
            for j in range(i + 1, len(names))
            if self._joint(names[i]) != self._joint(names[j])
        ]

    def _joint(self, name: str) -> int:
        frame, _, _ = self.spheres[name]
        return self.model.frames[self.model.getFrameId(frame)].parentJoint

    def compute_signed_distance_pairs(
        self,
        configuration: Configuration,
        max_distance: float = np.inf,
    ) -> List[SignedDistancePair]:
        pairs = [self.compute_signed_distance_pair(configuration, pair) for pair in self.pairs]
        return [pair for pair in pairs if pair.distance < max_distance]

    def check_geometry_pair(self, geometry_pair):
        if tuple(geometry_pair) not in self.pairs and tuple(reversed(geometry_pair)) not in self.pairs:
            raise InvalidGeometryPair(f"{geometry_pair} is not a registered pair")

    def compute_signed_distance_pair(self, configuration, geometry_pair):
        self.check_geometry_pair(geometry_pair)
        name_a, name_b = geometry_pair
        frame_a, center_a, radius_a = self.spheres[name_a]
        frame_b, center_b, radius_b = self.spheres[name_b]
        p_WA = configuration.get_transform_frame_to_world(frame_a) @ center_a
        p_WB = configuration.get_transform_frame_to_world(frame_b) @ center_b
        offset = p_WA - p_WB
        nhat_BA = offset / np.linalg.norm(offset)
        return SignedDistancePair(
            geometry_a=name_a,
            geometry_b=name_b,
            distance=float(np.linalg.norm(offset) - radius_a - radius_b),
            p_WCa=p_WA - radius_a * nhat_BA,
            p_WCb=p_WB + radius_b * nhat_BA,
            nhat_BA_W=nhat_BA,
            joint_a=self._joint(name_a),
            joint_b=self._joint(name_b),
        )
