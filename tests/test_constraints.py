"""Tests for the kinematic constraints."""

import numpy as np
import pytest

from multibody_ik import Configuration
from multibody_ik.constraints import (
    AngleBetweenVectorsConstraint,
    ComInPolyhedronConstraint,
    ComPositionConstraint,
    DistanceConstraint,
    GazeTargetConstraint,
    MinimumDistanceConstraint,
    MinimumDistancePenaltyFunction,
    OrientationConstraint,
    PointToPointDistanceConstraint,
    PolyhedronConstraint,
    PositionConstraint,
    UnitQuaternionConstraint,
    exponentially_smoothed_hinge_loss,
    quadratically_smoothed_hinge_loss,
)
from multibody_ik.exceptions import (
    ConstraintDefinitionError,
    ContextInUseError,
    ContextMismatchError,
    InvalidFrame,
    InvalidGeometryPair,
    InvalidModelInstance,
)
from multibody_ik.lie import SE3, SO3

from .conftest import SphereDistanceQuery, numerical_jacobian

Q_SPATIAL = np.array([0.3, -0.4, 0.7])


def assert_gradient_matches(constraint, x, atol=1e-6):
    _, dy = constraint.eval_with_gradient(x)
    np.testing.assert_allclose(dy, numerical_jacobian(constraint.eval, x), atol=atol)


class TestPositionConstraint:
    def test_value_at_known_configuration(self, planar_arm):
        context = Configuration(planar_arm)
        constraint = PositionConstraint(
            planar_arm, "universe", -np.ones(3), np.ones(3), "tip", np.zeros(3), context
        )
        np.testing.assert_allclose(constraint.eval([np.pi / 2, 0.0]), [0.0, 2.0, 0.0], atol=1e-12)
        assert not constraint.check_satisfied([np.pi / 2, 0.0])

    def test_gradient_in_moving_frame(self, spatial_arm):
        context = Configuration(spatial_arm)
        X_AbarA = SE3.from_rotation_and_translation(
            SO3.from_rpy(0.1, 0.2, -0.3), np.array([0.05, -0.1, 0.2])
        )
        constraint = PositionConstraint(
            spatial_arm,
            "link1",
            -np.ones(3),
            np.ones(3),
            "link3",
            np.array([0.2, 0.1, 0.0]),
            context,
            X_AbarA,
        )
        assert_gradient_matches(constraint, Q_SPATIAL)

    def test_gradient_with_floating_base(self, floating_arm):
        context = Configuration(floating_arm)
        constraint = PositionConstraint(
            floating_arm, "universe", -np.ones(3), np.ones(3), "tip", np.zeros(3), context
        )
        quat = SO3.from_rpy(0.2, -0.1, 0.4).quat
        q = np.concatenate([[0.1, 0.2, 0.3], quat, [0.5, -0.3]])
        _, dy = constraint.eval_with_gradient(q)
        # The quaternion part of the gradient is tangent to the unit sphere.
        np.testing.assert_allclose(dy[:, 3:7] @ quat, np.zeros(3), atol=1e-9)
        delta = np.zeros_like(q)
        delta[3:7] = np.array([0.3, -0.2, 0.1, 0.0])
        delta[3:7] -= (delta[3:7] @ quat) * quat
        delta[[0, 7]] = [0.2, -0.4]
        h = 1e-6
        directional = (constraint.eval(q + h * delta) - constraint.eval(q - h * delta)) / (2 * h)
        np.testing.assert_allclose(dy @ delta, directional, atol=1e-6)

    def test_bounds_are_mutable(self, planar_arm):
        context = Configuration(planar_arm)
        constraint = PositionConstraint(
            planar_arm, "universe", -np.ones(3), np.ones(3), "tip", np.zeros(3), context
        )
        constraint.set_bounds(-3 * np.ones(3), 3 * np.ones(3))
        assert constraint.check_satisfied(np.zeros(2))

    def test_unknown_frame(self, planar_arm):
        with pytest.raises(InvalidFrame):
            PositionConstraint(
                planar_arm,
                "universe",
                -np.ones(3),
                np.ones(3),
                "missing",
                np.zeros(3),
                Configuration(planar_arm),
            )

    def test_context_of_another_plant(self, planar_arm, spatial_arm):
        with pytest.raises(ContextMismatchError):
            PositionConstraint(
                planar_arm,
                "universe",
                -np.ones(3),
                np.ones(3),
                "tip",
                np.zeros(3),
                Configuration(spatial_arm),
            )

    def test_context_is_exclusive_during_evaluation(self, planar_arm):
        context = Configuration(planar_arm)
        constraint = PositionConstraint(
            planar_arm, "universe", -np.ones(3), np.ones(3), "tip", np.zeros(3), context
        )
        with context.evaluation(np.zeros(2)):
            with pytest.raises(ContextInUseError):
                constraint.eval(np.zeros(2))


class TestOrientationConstraint:
    def test_angle_of_single_joint_rotation(self, planar_arm):
        context = Configuration(planar_arm)
        constraint = OrientationConstraint(
            planar_arm, "universe", SO3.identity(), "link1", SO3.identity(), 0.1, context
        )
        np.testing.assert_allclose(constraint.eval([0.4, 0.0]), [0.4], atol=1e-9)
        assert constraint.check_satisfied([0.05, 0.0])
        assert not constraint.check_satisfied([0.4, 0.0])

    def test_gradient(self, spatial_arm):
        context = Configuration(spatial_arm)
        constraint = OrientationConstraint(
            spatial_arm,
            "link1",
            SO3.from_rpy(0.1, 0.0, 0.3),
            "link3",
            SO3.from_rpy(0.0, -0.2, 0.1),
            0.5,
            context,
        )
        assert_gradient_matches(constraint, Q_SPATIAL)

    def test_gradient_is_zero_at_identity(self, planar_arm):
        context = Configuration(planar_arm)
        constraint = OrientationConstraint(
            planar_arm, "universe", SO3.identity(), "link1", SO3.identity(), 0.1, context
        )
        _, dy = constraint.eval_with_gradient(np.zeros(2))
        np.testing.assert_array_equal(dy, np.zeros((1, 2)))

    @pytest.mark.parametrize("theta_bound", [-0.1, np.pi + 0.1])
    def test_theta_bound_range(self, planar_arm, theta_bound):
        with pytest.raises(ConstraintDefinitionError):
            OrientationConstraint(
                planar_arm,
                "universe",
                SO3.identity(),
                "link1",
                SO3.identity(),
                theta_bound,
                Configuration(planar_arm),
            )


class TestAngleBetweenVectorsConstraint:
    def test_value_and_gradient(self, spatial_arm):
        context = Configuration(spatial_arm)
        constraint = AngleBetweenVectorsConstraint(
            spatial_arm,
            "link1",
            np.array([1.0, 0.2, 0.0]),
            "link3",
            np.array([0.0, 0.3, 2.0]),
            0.2,
            1.0,
            context,
        )
        assert_gradient_matches(constraint, Q_SPATIAL)

    def test_value_in_plane(self, planar_arm):
        context = Configuration(planar_arm)
        constraint = AngleBetweenVectorsConstraint(
            planar_arm, "link1", [1.0, 0.0, 0.0], "link2", [2.0, 0.0, 0.0], 0.0, 0.5, context
        )
        np.testing.assert_allclose(constraint.eval([0.3, -0.7]), [0.7], atol=1e-9)

    def test_negating_vectors(self, spatial_arm):
        context = Configuration(spatial_arm)
        a_A = np.array([1.0, 0.2, 0.0])
        b_B = np.array([0.0, 0.3, 2.0])

        def angle(a, b):
            constraint = AngleBetweenVectorsConstraint(
                spatial_arm, "link1", a, "link3", b, 0.0, np.pi, context
            )
            return constraint.eval(Q_SPATIAL)[0]

        phi = angle(a_A, b_B)
        np.testing.assert_allclose(angle(-a_A, -b_B), phi, atol=1e-9)
        np.testing.assert_allclose(angle(-a_A, b_B), np.pi - phi, atol=1e-9)
        np.testing.assert_allclose(angle(a_A, -b_B), np.pi - phi, atol=1e-9)

    def test_zero_vector_is_rejected(self, planar_arm):
        with pytest.raises(ConstraintDefinitionError):
            AngleBetweenVectorsConstraint(
                planar_arm,
                "link1",
                np.zeros(3),
                "link2",
                [1.0, 0.0, 0.0],
                0.0,
                1.0,
                Configuration(planar_arm),
            )

    def test_bounds_must_be_ordered(self, planar_arm):
        with pytest.raises(ConstraintDefinitionError):
            AngleBetweenVectorsConstraint(
                planar_arm,
                "link1",
                [1.0, 0.0, 0.0],
                "link2",
                [1.0, 0.0, 0.0],
                1.0,
                0.5,
                Configuration(planar_arm),
            )


class TestGazeTargetConstraint:
    def test_target_inside_and_outside_cone(self, planar_arm):
        context = Configuration(planar_arm)
        # Cone at the world origin looking along +y, target at the arm tip.
        constraint = GazeTargetConstraint(
            planar_arm,
            "universe",
            np.zeros(3),
            np.array([0.0, 1.0, 0.0]),
            "tip",
            np.zeros(3),
            0.3,
            context,
        )
        assert constraint.check_satisfied([np.pi / 2, 0.0])
        assert not constraint.check_satisfied([0.0, 0.0])
        # Behind the apex the first output is negative.
        assert constraint.eval([-np.pi / 2, 0.0])[0] < 0.0

    def test_gradient(self, spatial_arm):
        context = Configuration(spatial_arm)
        constraint = GazeTargetConstraint(
            spatial_arm,
            "link1",
            np.array([0.1, 0.0, 0.2]),
            np.array([1.0, 1.0, 0.0]),
            "link3",
            np.array([0.1, -0.2, 0.3]),
            0.4,
            context,
        )
        assert_gradient_matches(constraint, Q_SPATIAL)

    def test_cone_half_angle_range(self, planar_arm):
        with pytest.raises(ConstraintDefinitionError):
            GazeTargetConstraint(
                planar_arm,
                "universe",
                np.zeros(3),
                np.array([0.0, 1.0, 0.0]),
                "tip",
                np.zeros(3),
                2.0,
                Configuration(planar_arm),
            )


class TestPointToPointDistanceConstraint:
    def test_value_and_gradient(self, planar_arm):
        context = Configuration(planar_arm)
        constraint = PointToPointDistanceConstraint(
            planar_arm, "universe", np.zeros(3), "tip", np.zeros(3), 0.5, 1.5, context
        )
        np.testing.assert_allclose(constraint.eval([0.2, np.pi / 2]), [np.sqrt(2.0)], atol=1e-9)
        assert_gradient_matches(constraint, np.array([0.2, 1.1]))

    def test_coincident_points_have_zero_gradient(self, planar_arm):
        context = Configuration(planar_arm)
        constraint = PointToPointDistanceConstraint(
            planar_arm, "link1", np.zeros(3), "universe", np.zeros(3), 0.0, 1.0, context
        )
        value, dy = constraint.eval_with_gradient([0.3, 0.0])
        np.testing.assert_allclose(value, [0.0], atol=1e-12)
        np.testing.assert_array_equal(dy, np.zeros((1, 2)))

    def test_negative_lower_bound(self, planar_arm):
        with pytest.raises(ConstraintDefinitionError):
            PointToPointDistanceConstraint(
                planar_arm,
                "universe",
                np.zeros(3),
                "tip",
                np.zeros(3),
                -0.1,
                1.0,
                Configuration(planar_arm),
            )


class TestPolyhedronConstraint:
    def test_multiple_points(self, spatial_arm):
        context = Configuration(spatial_arm)
        p_GP = np.array([[0.1, 0.0], [0.0, 0.2], [0.0, -0.1]])
        A = np.arange(12.0).reshape(2, 6) / 10.0
        constraint = PolyhedronConstraint(
            spatial_arm, "link1", "link3", p_GP, A, np.ones(2), context
        )
        assert constraint.num_outputs == 2
        np.testing.assert_array_equal(constraint.lower_bound, [-np.inf, -np.inf])
        assert_gradient_matches(constraint, Q_SPATIAL)

    def test_shape_mismatch(self, planar_arm):
        with pytest.raises(ConstraintDefinitionError):
            PolyhedronConstraint(
                planar_arm,
                "universe",
                "tip",
                np.zeros(3),
                np.ones((1, 6)),
                np.ones(1),
                Configuration(planar_arm),
            )


class TestComConstraints:
    def test_com_position_gradient(self, spatial_arm):
        context = Configuration(spatial_arm)
        constraint = ComPositionConstraint(spatial_arm, None, "link1", context)
        assert constraint.num_vars == spatial_arm.nq + 3
        x = np.concatenate([Q_SPATIAL, [0.1, 0.2, 0.3]])
        _, dy = constraint.eval_with_gradient(x)
        np.testing.assert_array_equal(dy[:, 3:], -np.eye(3))
        assert_gradient_matches(constraint, x)

    def test_com_in_polyhedron_of_subtree(self, planar_arm):
        context = Configuration(planar_arm)
        constraint = ComInPolyhedronConstraint(
            planar_arm, ["joint2"], "universe", np.eye(3), -np.ones(3), np.ones(3), context
        )
        # joint2 carries link2 (com at 0.5) and the tip (at 1.0).
        expected_x = 1.0 + (1.0 * 0.5 + 0.1 * 1.0) / 1.1
        np.testing.assert_allclose(constraint.eval([0.0, 0.0]), [expected_x, 0.0, 0.0], atol=1e-9)
        assert_gradient_matches(constraint, np.array([0.4, -0.3]))

    @pytest.mark.parametrize(
        "model_instances",
        [[], ["joint1", "joint1"], ["missing"], ["joint1", "joint2"], ["universe"]],
    )
    def test_invalid_model_instances(self, planar_arm, model_instances):
        with pytest.raises(InvalidModelInstance):
            ComInPolyhedronConstraint(
                planar_arm,
                model_instances,
                "universe",
                np.eye(3),
                -np.ones(3),
                np.ones(3),
                Configuration(planar_arm),
            )


class TestDistanceConstraints:
    @pytest.fixture
    def spheres(self, planar_arm):
        return SphereDistanceQuery(
            planar_arm,
            [
                ("obstacle", "universe", [1.0, 1.0, 0.0], 0.2),
                ("tip_ball", "tip", [0.0, 0.0, 0.0], 0.1),
            ],
        )

    def test_distance_constraint(self, planar_arm, spheres):
        context = Configuration(planar_arm)
        constraint = DistanceConstraint(
            planar_arm, ("obstacle", "tip_ball"), context, spheres, 0.1, np.inf
        )
        np.testing.assert_allclose(constraint.eval([0.0, 0.0]), [np.sqrt(2.0) - 0.3], atol=1e-9)
        assert_gradient_matches(constraint, np.array([0.3, 0.4]))

    def test_unknown_pair_is_rejected_at_construction(self, planar_arm, spheres):
        context = Configuration(planar_arm)
        with pytest.raises(InvalidGeometryPair):
            DistanceConstraint(planar_arm, ("obstacle", "nope"), context, spheres, 0.0, 1.0)

    def test_minimum_distance_far_away_is_zero(self, planar_arm, spheres):
        context = Configuration(planar_arm)
        constraint = MinimumDistanceConstraint(
            planar_arm, 0.05, context, spheres, influence_distance_offset=0.1
        )
        value, dy = constraint.eval_with_gradient([-np.pi / 2, 0.0])
        np.testing.assert_array_equal(value, [0.0])
        np.testing.assert_array_equal(dy, np.zeros((1, 2)))

    @pytest.mark.parametrize(
        "penalty",
        [
            MinimumDistancePenaltyFunction.QUADRATICALLY_SMOOTHED_HINGE,
            MinimumDistancePenaltyFunction.EXPONENTIALLY_SMOOTHED_HINGE,
        ],
    )
    def test_minimum_distance_saturates_at_minimum(self, planar_arm, spheres, penalty):
        context = Configuration(planar_arm)
        # Near q = (pi/2, -pi/2) the tip sits close to (1, 1), inside the obstacle.
        q_inside = np.array([np.pi / 2, -np.pi / 2 + 0.05])
        constraint = MinimumDistanceConstraint(
            planar_arm, 0.05, context, spheres, penalty_function=penalty
        )
        assert constraint.eval(q_inside)[0] > 1.0
        assert not constraint.check_satisfied(q_inside)
        assert_gradient_matches(constraint, np.array([0.9, -0.8]), atol=1e-5)

    def test_minimum_distance_accepts_custom_penalty(self, planar_arm, spheres):
        def hinge(x):
            return (max(0.0, -x), -1.0 if x < 0.0 else 0.0)

        constraint = MinimumDistanceConstraint(
            planar_arm, 0.05, Configuration(planar_arm), spheres, penalty_function=hinge
        )
        assert constraint.check_satisfied([-np.pi / 2, 0.0])

    def test_minimum_distance_rejects_bad_penalty(self, planar_arm, spheres):
        with pytest.raises(ConstraintDefinitionError):
            MinimumDistanceConstraint(
                planar_arm,
                0.05,
                Configuration(planar_arm),
                spheres,
                penalty_function=lambda x: (0.0, 0.0),
            )
        with pytest.raises(ConstraintDefinitionError):
            MinimumDistanceConstraint(
                planar_arm, 0.05, Configuration(planar_arm), spheres, influence_distance_offset=0.0
            )


def test_hinge_losses():
    assert quadratically_smoothed_hinge_loss(0.5) == (0.0, 0.0)
    assert quadratically_smoothed_hinge_loss(-0.5) == (0.125, -0.5)
    assert quadratically_smoothed_hinge_loss(-2.0) == (1.5, -1.0)
    value, derivative = exponentially_smoothed_hinge_loss(-1.0)
    np.testing.assert_allclose(value, np.exp(-1.0))
    np.testing.assert_allclose(derivative, -2.0 * np.exp(-1.0))
    h = 1e-6
    numerical = (
        exponentially_smoothed_hinge_loss(-0.5 + h)[0] - exponentially_smoothed_hinge_loss(-0.5 - h)[0]
    ) / (2 * h)
    np.testing.assert_allclose(exponentially_smoothed_hinge_loss(-0.5)[1], numerical, atol=1e-6)


def test_unit_quaternion_constraint():
    constraint = UnitQuaternionConstraint()
    assert constraint.check_satisfied([0.0, 0.0, 0.6, 0.8])
    assert not constraint.check_satisfied([0.0, 0.0, 0.0, 2.0])
    assert_gradient_matches(constraint, np.array([0.1, 0.2, 0.3, 0.4]))


def test_unit_quaternion_violation_grows_with_norm_error():
    constraint = UnitQuaternionConstraint()
    direction = np.array([0.1, -0.2, 0.3, 0.9])
    direction /= np.linalg.norm(direction)
    np.testing.assert_allclose(constraint.violation(direction), [0.0], atol=1e-12)
    # Pairs of scales with increasing |s^2 - 1|, on both sides of the unit sphere.
    for near, far in [(0.9, 0.5), (1.1, 1.5), (0.95, 1.2), (0.3, 0.0)]:
        near_violation = constraint.violation(near * direction)[0]
        far_violation = constraint.violation(far * direction)[0]
        assert near_violation > 0.0
        assert far_violation > near_violation
