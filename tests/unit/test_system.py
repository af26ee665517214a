"""
Unit Tests for Mechanism System
===============================

Tests for tree topology, bulk lifecycle operations and two-pass system
feedforward.

Author: Mechanism Control Team
License: MIT
"""

import threading

import numpy as np
import pytest

from src.actuators import ActuatorRequest
from src.physics import PhysicalProperties
from src.mechanisms import (
    LinearMechanism,
    MechanismConfigError,
    MechanismKind,
    MechanismSystem,
    RotatingMechanism,
    SetPoint,
    child_motion_effect,
    reaction_force,
)


# =============================================================================
# Fixtures
# =============================================================================


def linear(name, mass=1.0):
    """Vertical linear mechanism with CG at the origin."""
    return LinearMechanism(name, PhysicalProperties(mass=mass), motion_axis=[0, 0, 1])


def rotating(name, mass=1.0, cog=(0.3, 0.0, 0.0)):
    """Mechanism rotating about +z through the origin."""
    props = PhysicalProperties(mass=mass, center_of_gravity=np.array(cog))
    return RotatingMechanism(name, props, rotation_axis=[0, 0, 1])


@pytest.fixture
def robot(elevator_properties, arm_properties):
    """Elevator carrying an arm."""
    system = MechanismSystem("ExampleRobot")
    system.register_mechanism(
        LinearMechanism("Elevator", elevator_properties, motion_axis=[0, 0, 1])
    )
    system.register_mechanism(
        RotatingMechanism("Arm", arm_properties, rotation_axis=[0, 0, 1])
    )
    system.set_parent_child("Elevator", "Arm")
    return system


# =============================================================================
# Topology Tests
# =============================================================================


class TestTopology:
    """Tests for registration and parent/child relations."""

    def test_register_returns_ids(self):
        system = MechanismSystem("S")
        assert system.register_mechanism(linear("A")) == 0
        assert system.register_mechanism(linear("B")) == 1
        assert len(system) == 2
        assert "A" in system
        assert "C" not in system

    def test_first_registered_is_root(self):
        system = MechanismSystem("S")
        assert system.root_mechanism is None
        system.register_mechanism(linear("A"))
        system.register_mechanism(linear("B"))
        assert system.root_mechanism == "A"

    def test_duplicate_name_rejected(self):
        system = MechanismSystem("S")
        system.register_mechanism(linear("A"))
        with pytest.raises(MechanismConfigError):
            system.register_mechanism(rotating("A"))
        assert len(system) == 1

    def test_parent_child_queries(self, robot):
        assert robot.get_children("Elevator") == ["Arm"]
        assert robot.get_parent("Arm") == "Elevator"
        assert robot.get_parent("Elevator") is None
        assert robot.get_children("Missing") == []

    def test_children_in_declaration_order(self):
        system = MechanismSystem("S")
        for name in ["Root", "C", "A", "B"]:
            system.register_mechanism(linear(name))
        for name in ["C", "A", "B"]:
            system.set_parent_child("Root", name)
        assert system.get_children("Root") == ["C", "A", "B"]

    def test_unknown_name_rejected(self, robot):
        with pytest.raises(MechanismConfigError):
            robot.set_parent_child("Elevator", "Wrist")
        with pytest.raises(MechanismConfigError):
            robot.set_parent_child("Wrist", "Arm")
        assert robot.get_children("Elevator") == ["Arm"]

    def test_self_link_rejected(self, robot):
        with pytest.raises(MechanismConfigError):
            robot.set_parent_child("Arm", "Arm")
        assert robot.get_children("Arm") == []

    def test_second_parent_rejected(self, robot):
        robot.register_mechanism(linear("Turret"))
        with pytest.raises(MechanismConfigError):
            robot.set_parent_child("Turret", "Arm")
        assert robot.get_parent("Arm") == "Elevator"
        assert robot.get_children("Turret") == []

    def test_cycle_rejected(self):
        """A -> B -> C -> A is refused without touching the tree."""
        system = MechanismSystem("S")
        for name in "ABC":
            system.register_mechanism(linear(name))
        system.set_parent_child("A", "B")
        system.set_parent_child("B", "C")

        with pytest.raises(MechanismConfigError):
            system.set_parent_child("C", "A")

        assert system.get_parent("A") is None
        assert system.get_children("C") == []
        assert system.root_mechanism == "A"

    def test_implicit_root_hands_over(self):
        """A root that gains a parent passes the role to its top ancestor."""
        system = MechanismSystem("S")
        system.register_mechanism(rotating("Arm"))
        system.register_mechanism(linear("Elevator"))
        system.register_mechanism(linear("Base"))

        system.set_parent_child("Elevator", "Arm")
        assert system.root_mechanism == "Elevator"

        system.set_parent_child("Base", "Elevator")
        assert system.root_mechanism == "Base"

    def test_explicit_root_sticks(self):
        system = MechanismSystem("S")
        system.register_mechanism(rotating("Arm"))
        system.register_mechanism(linear("Elevator"))
        system.set_root("Arm")

        system.set_parent_child("Elevator", "Arm")
        assert system.root_mechanism == "Arm"

    def test_set_root_unknown(self):
        system = MechanismSystem("S")
        with pytest.raises(MechanismConfigError):
            system.set_root("Nope")

    def test_concurrent_registration(self):
        """Registration from several threads yields unique ids."""
        system = MechanismSystem("S")
        ids = []
        lock = threading.Lock()

        def worker(offset):
            for i in range(25):
                index = system.register_mechanism(linear(f"m{offset}-{i}"))
                with lock:
                    ids.append(index)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(system) == 100
        assert sorted(ids) == list(range(100))

    def test_get_all_mechanisms(self, robot):
        mechanisms = robot.get_all_mechanisms()
        assert list(mechanisms) == ["Elevator", "Arm"]
        assert robot.get_mechanism("Arm") is mechanisms["Arm"]
        assert robot.get_mechanism("Wrist") is None


# =============================================================================
# Bulk Operation Tests
# =============================================================================


class TestBulkOperations:
    """Tests for system-wide lifecycle operations."""

    def test_empty_system_at_target(self):
        assert MechanismSystem("Empty").are_all_mechanisms_at_target()

    def test_set_setpoints_skips_unknown(self, robot):
        robot.set_mechanism_setpoints({
            "Elevator": SetPoint(1.0),
            "Wrist": SetPoint(2.0),
        })
        assert robot.get_mechanism("Elevator").setpoint == SetPoint(1.0)
        assert robot.get_mechanism("Arm").setpoint is None

    def test_update_and_execute(self, robot, make_port, actuator_config):
        lift = make_port(0.5)
        joint = make_port(0.2)
        robot.get_mechanism("Elevator").register_actuator(lift, actuator_config("lift"))
        robot.get_mechanism("Arm").register_actuator(joint, actuator_config("joint"))
        robot.set_mechanism_setpoints({"Elevator": SetPoint(1.0)})

        robot.update_all_mechanism_states()
        robot.execute_all_mechanism_control()

        assert robot.get_mechanism("Elevator").position == 0.5
        assert robot.get_mechanism("Arm").angle == 0.2
        lift.issue_command.assert_called_once()
        joint.issue_command.assert_not_called()

    def test_all_at_target(self, robot, make_port, actuator_config):
        lift = make_port(1.0)
        joint = make_port(0.5)
        robot.get_mechanism("Elevator").register_actuator(lift, actuator_config("lift"))
        robot.get_mechanism("Arm").register_actuator(joint, actuator_config("joint"))
        robot.set_mechanism_setpoints({"Elevator": SetPoint(1.0), "Arm": SetPoint(0.0)})

        robot.run_cycle()
        assert not robot.are_all_mechanisms_at_target()

        joint.reading["position"] = 0.0
        robot.run_cycle()
        assert robot.are_all_mechanisms_at_target()

    def test_emergency_stop_all(self, robot, make_port, actuator_config):
        """Every actuator of every mechanism gets a zero command."""
        ports = [make_port(), make_port(), make_port()]
        elevator = robot.get_mechanism("Elevator")
        elevator.register_actuator(ports[0], actuator_config("a"))
        elevator.register_actuator(ports[1], actuator_config("b"))
        robot.get_mechanism("Arm").register_actuator(ports[2], actuator_config("c"))

        robot.emergency_stop_all_mechanisms()

        for port in ports:
            port.issue_command.assert_called_once_with(ActuatorRequest.zero())

    def test_get_status(self, robot):
        status = robot.get_status()
        assert status["system_name"] == "ExampleRobot"
        assert status["root"] == "Elevator"
        assert status["relations"] == {"Arm": "Elevator"}
        assert set(status["mechanisms"]) == {"Elevator", "Arm"}


# =============================================================================
# Coupling Tests
# =============================================================================


class TestCoupling:
    """Tests for the motion and reaction coupling tables."""

    @pytest.mark.parametrize("parent, child, factor", [
        (MechanismKind.LINEAR, MechanismKind.LINEAR, 0.5),
        (MechanismKind.LINEAR, MechanismKind.ROTATING, 0.1),
        (MechanismKind.ROTATING, MechanismKind.LINEAR, 0.1),
        (MechanismKind.ROTATING, MechanismKind.ROTATING, 0.3),
    ])
    def test_motion_effect(self, parent, child, factor):
        motion = np.array([1.0, -2.0, 3.0])
        assert np.allclose(child_motion_effect(parent, child, motion), factor * motion)

    @pytest.mark.parametrize("parent, child, factor", [
        (MechanismKind.LINEAR, MechanismKind.LINEAR, -1.0),
        (MechanismKind.LINEAR, MechanismKind.ROTATING, -0.1),
        (MechanismKind.ROTATING, MechanismKind.LINEAR, -0.1),
        (MechanismKind.ROTATING, MechanismKind.ROTATING, -0.5),
    ])
    def test_reaction(self, parent, child, factor):
        force = np.array([0.5, 0.0, -4.0])
        assert np.allclose(reaction_force(parent, child, force), factor * force)


# =============================================================================
# System Feedforward Tests
# =============================================================================


class TestSystemFeedforward:
    """Tests for calculate_system_feedforward."""

    def test_elevator_arm(self, robot, elevator_properties, arm_properties):
        """Arm rides the elevator; elevator feels the arm's reaction."""
        result = robot.calculate_system_feedforward({
            "Elevator": SetPoint(1.0),
            "Arm": SetPoint(0.0),
        })

        # τ = (0.3,0,0) × (0,0,-49.05)
        arm_expected = np.array([0.0, 14.715, 0.0])
        elevator_expected = np.array([0.0, -1.4715, -98.1])

        assert set(result) == {"Elevator", "Arm"}
        assert np.allclose(result["Arm"], arm_expected)
        assert np.allclose(result["Elevator"], elevator_expected)

    def test_states_projected(self, robot):
        robot.calculate_system_feedforward({
            "Elevator": SetPoint(1.0, 0.2, 0.3),
            "Arm": SetPoint(0.5),
        })
        elevator = robot.get_mechanism("Elevator")
        assert elevator.position == 1.0
        assert elevator.velocity == 0.2
        assert elevator.acceleration == 0.3
        assert robot.get_mechanism("Arm").angle == 0.5

    @pytest.mark.parametrize("height", [0.0, 1.0, 2.0, -3.5])
    def test_child_independent_of_parent_position(self, robot, height):
        """Parent position does not change the child's force."""
        result = robot.calculate_system_feedforward({
            "Elevator": SetPoint(height),
            "Arm": SetPoint(0.0, 1.0, 0.5),
        })
        arm = robot.get_mechanism("Arm")

        assert np.allclose(result["Arm"], arm.get_feedforward())
        assert np.allclose(result["Arm"], [0.0, 14.715, 0.5 * 0.5])

    def test_linear_chain(self):
        """Linear-on-linear reaction is -1.0·F_child."""
        system = MechanismSystem("S")
        system.register_mechanism(linear("Root", mass=1.0))
        system.register_mechanism(linear("Child", mass=2.0))
        system.set_parent_child("Root", "Child")

        result = system.calculate_system_feedforward({
            "Root": SetPoint(2.0),
            "Child": SetPoint(0.0),
        })

        child_expected = np.array([0.0, 0.0, -19.62])
        root_expected = np.array([0.0, 0.0, -9.81 + 19.62])
        assert np.allclose(result["Child"], child_expected)
        assert np.allclose(result["Root"], root_expected)

    def test_reaction_uses_subtree_total(self):
        """A grandchild's reaction reaches the root through its parent's total."""
        system = MechanismSystem("S")
        for name in ["Root", "Mid", "Leaf"]:
            system.register_mechanism(linear(name))
        system.set_parent_child("Root", "Mid")
        system.set_parent_child("Mid", "Leaf")

        result = system.calculate_system_feedforward(
            {name: SetPoint(0.0) for name in ["Root", "Mid", "Leaf"]}
        )

        assert np.allclose(result["Leaf"], [0.0, 0.0, -9.81])
        assert np.allclose(result["Mid"], [0.0, 0.0, 0.0])
        assert np.allclose(result["Root"], [0.0, 0.0, -9.81])

    def test_missing_setpoint_breaks_subtree(self):
        """A mechanism without a setpoint cuts off its subtree only."""
        system = MechanismSystem("S")
        for name in ["Root", "Mid", "Leaf", "Sibling"]:
            system.register_mechanism(linear(name))
        system.set_parent_child("Root", "Mid")
        system.set_parent_child("Mid", "Leaf")
        system.set_parent_child("Root", "Sibling")

        result = system.calculate_system_feedforward({
            "Root": SetPoint(0.0),
            "Leaf": SetPoint(0.0),
            "Sibling": SetPoint(0.0),
        })

        assert set(result) == {"Root", "Sibling"}
        # Only the sibling reacts back on the root
        assert np.allclose(result["Root"], [0.0, 0.0, 0.0])

    def test_root_without_setpoint(self, robot):
        assert robot.calculate_system_feedforward({"Arm": SetPoint(0.0)}) == {}

    def test_empty_system(self):
        assert MechanismSystem("Empty").calculate_system_feedforward({}) == {}

    def test_rotating_chain(self):
        """Rotating-on-rotating reaction factor is -0.5."""
        system = MechanismSystem("S")
        system.register_mechanism(rotating("Shoulder", mass=2.0))
        system.register_mechanism(rotating("Elbow", mass=1.0))
        system.set_parent_child("Shoulder", "Elbow")

        result = system.calculate_system_feedforward({
            "Shoulder": SetPoint(0.0),
            "Elbow": SetPoint(0.0),
        })

        elbow = np.array([0.0, 0.3 * 9.81, 0.0])
        shoulder = np.array([0.0, 0.3 * 2.0 * 9.81, 0.0])
        assert np.allclose(result["Elbow"], elbow)
        assert np.allclose(result["Shoulder"], shoulder - 0.5 * elbow)
