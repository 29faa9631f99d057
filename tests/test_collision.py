"""Tests for distance queries backed by pinocchio collision geometries."""

import numpy as np
import pytest

from multibody_ik import Configuration
from multibody_ik.collision import GeometryDistanceQuery, distance_jacobian
from multibody_ik.constraints import DistanceConstraint, MinimumDistanceConstraint
from multibody_ik.exceptions import InvalidGeometryPair

from .conftest import numerical_jacobian, planar_arm_with_spheres_urdf

OBSTACLE_CENTER = np.array([2.0, 0.0, 0.0])
CLEARANCE = 0.2 + 0.1


@pytest.fixture
def urdf_path(tmp_path):
    path = tmp_path / "planar_arm.urdf"
    path.write_text(planar_arm_with_spheres_urdf())
    return str(path)


@pytest.fixture
def context(urdf_path):
    return Configuration.from_urdf(urdf_path)


@pytest.fixture
def query(context, urdf_path):
    return GeometryDistanceQuery.from_urdf(context.model, urdf_path)


def geometry_names(query):
    return [geometry.name for geometry in query.geometry_model.geometryObjects]


def tip_position(context, q):
    context.update(q)
    return context.get_transform_frame_to_world("tip").translation


def test_from_urdf_loads_model_and_geometries(context, query):
    assert context.nq == 2
    assert query.geometry_model.ngeoms == 2
    assert len(query.geometry_model.collisionPairs) == 1


def test_signed_distance_between_spheres(context, query):
    q = np.array([0.3, 0.2])
    tip = tip_position(context, q)
    pairs = query.compute_signed_distance_pairs(context)
    assert len(pairs) == 1
    pair = pairs[0]
    np.testing.assert_allclose(pair.distance, np.linalg.norm(tip - OBSTACLE_CENTER) - CLEARANCE, atol=1e-9)

    centers = {0: OBSTACLE_CENTER, 2: tip}
    expected_normal = centers[pair.joint_a] - centers[pair.joint_b]
    np.testing.assert_allclose(pair.nhat_BA_W, expected_normal / np.linalg.norm(expected_normal), atol=1e-9)
    np.testing.assert_allclose(pair.p_WCa - pair.p_WCb, pair.distance * pair.nhat_BA_W, atol=1e-9)

    # Pairs farther than the cutoff are dropped.
    assert query.compute_signed_distance_pairs(context, max_distance=pair.distance - 1e-3) == []


def test_distance_jacobian_matches_finite_differences(context, query):
    q0 = np.array([0.3, 0.2])
    names = tuple(geometry_names(query))

    def distance(q):
        context.update(q)
        return np.array([query.compute_signed_distance_pair(context, names).distance])

    context.update(q0, compute_jacobians=True)
    pair = query.compute_signed_distance_pair(context, names)
    np.testing.assert_allclose(
        distance_jacobian(context, pair)[np.newaxis, :],
        numerical_jacobian(distance, q0),
        atol=1e-6,
    )


def test_distance_constraints_on_geometry_query(context, query):
    names = tuple(geometry_names(query))
    q0 = np.array([0.3, 0.2])
    constraint = DistanceConstraint(context.model, names, context, query, 0.1, 1.0)
    value, dy = constraint.eval_with_gradient(q0)
    np.testing.assert_allclose(value, [np.linalg.norm(tip_position(context, q0) - OBSTACLE_CENTER) - CLEARANCE])
    np.testing.assert_allclose(dy, numerical_jacobian(constraint.eval, q0), atol=1e-6)

    minimum = MinimumDistanceConstraint(
        context.model, 0.4, context, query, influence_distance_offset=0.5
    )
    _, dy = minimum.eval_with_gradient(q0)
    np.testing.assert_allclose(dy, numerical_jacobian(minimum.eval, q0), atol=1e-6)


def test_unknown_geometry_pair(context, query):
    name = geometry_names(query)[0]
    with pytest.raises(InvalidGeometryPair):
        query.check_geometry_pair((name, "missing"))
    with pytest.raises(InvalidGeometryPair):
        DistanceConstraint(context.model, (name, "missing"), context, query, 0.0, 1.0)
