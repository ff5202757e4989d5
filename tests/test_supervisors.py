"""Tests for the bounce and flocking supervisors."""

import pytest

from metabot_fleet.core.models import Command, EntityOrder, Vector3
from metabot_fleet.supervisors import (
    BoidSupervisor,
    SimpleSupervisor,
    Supervisor,
    UnknownSupervisorType,
    create_supervisor,
)

BIG = Vector3(1000, 1000, 1000)


class TestSimpleSupervisor:
    def test_out_of_bounds_axis_is_reversed(self, make_robot):
        robot = make_robot("a", position=Vector3(600, 0, 10), velocity=Vector3(2, 3, 4))
        supervisor = SimpleSupervisor("bounce", Vector3(500, 500, 500), [robot])

        supervisor.step()

        assert robot.velocity == Vector3(-2, 3, 4)

    def test_negative_side_and_multiple_axes(self, make_robot):
        robot = make_robot(
            "a", position=Vector3(-501, 0, 900), velocity=Vector3(-1, 5, 2)
        )
        supervisor = SimpleSupervisor("bounce", Vector3(500, 500, 500), [robot])

        supervisor.step()

        assert robot.velocity == Vector3(1, 5, -2)

    def test_in_bounds_robot_untouched(self, make_robot):
        robot = make_robot("a", position=Vector3(500, 0, 0), velocity=Vector3(2, 3, 4))
        supervisor = SimpleSupervisor("bounce", Vector3(500, 500, 500), [robot])

        supervisor.step()

        assert robot.velocity == Vector3(2, 3, 4)

    def test_robots_do_not_interact(self, make_robot):
        outside = make_robot("a", position=Vector3(0, 0, 700), velocity=Vector3(0, 0, 3))
        inside = make_robot("b", position=Vector3(0, 0, 0), velocity=Vector3(1, 1, 1))
        supervisor = SimpleSupervisor("bounce", Vector3(500, 500, 500), [outside, inside])

        supervisor.step()

        assert outside.velocity == Vector3(0, 0, -3)
        assert inside.velocity == Vector3(1, 1, 1)

    def test_empty_supervisor_steps(self):
        SimpleSupervisor("bounce", Vector3(1, 1, 1)).step()


class TestBoidSupervisor:
    def test_two_robot_fixture_matches_formula(self, make_robot):
        a = make_robot("a", position=Vector3(0, 0, 0), velocity=Vector3(1, 0, 0))
        b = make_robot("b", position=Vector3(100, 0, 0), velocity=Vector3(1, 0, 0))
        supervisor = BoidSupervisor("flock", BIG, [a, b])

        assert supervisor.move_towards_center("a") == Vector3(10, 0, 0)
        assert supervisor.match_velocity("a") == Vector3(0, 0, 0)
        assert supervisor.bounding_position("a") == Vector3(0, 0, 0)
        assert supervisor.keep_small_distance("a") == Vector3(0, 0, 0)

        supervisor.step()

        assert a.velocity == Vector3(11, 0, 0)
        assert b.velocity == Vector3(-9, 0, 0)

    def test_rules_read_start_of_tick_snapshot(self, make_robot):
        def build(order):
            robots = {
                "a": make_robot("a", position=Vector3(0, 0, 0), velocity=Vector3(1, 0, 0)),
                "b": make_robot("b", position=Vector3(100, 0, 0), velocity=Vector3(1, 0, 0)),
                "c": make_robot("c", position=Vector3(0, 80, 0), velocity=Vector3(0, 2, 0)),
            }
            supervisor = BoidSupervisor("flock", BIG, [robots[key] for key in order])
            supervisor.step()
            return {key: robot.velocity for key, robot in robots.items()}

        assert build(["a", "b", "c"]) == build(["c", "b", "a"])

    def test_alignment_averages_other_velocities(self, make_robot):
        a = make_robot("a", velocity=Vector3(0, 0, 0))
        b = make_robot("b", velocity=Vector3(8, 0, 0))
        c = make_robot("c", velocity=Vector3(8, 16, 0))
        supervisor = BoidSupervisor("flock", BIG, [a, b, c])

        assert supervisor.match_velocity("a") == Vector3(1, 1, 0)

    def test_separation_is_computed_but_not_applied(self, make_robot):
        a = make_robot("a", position=Vector3(0, 0, 0), velocity=Vector3(1, 0, 0))
        b = make_robot("b", position=Vector3(50, 0, 0), velocity=Vector3(1, 0, 0))
        supervisor = BoidSupervisor("flock", BIG, [a, b])

        assert supervisor.keep_small_distance("a") == Vector3(-50, 0, 0)

        supervisor.step()

        # v + cohesion only; the separation push is left out.
        assert a.velocity == Vector3(6, 0, 0)

    def test_separation_applied_when_enabled(self, make_robot):
        a = make_robot("a", position=Vector3(0, 0, 0), velocity=Vector3(1, 0, 0))
        b = make_robot("b", position=Vector3(50, 0, 0), velocity=Vector3(1, 0, 0))
        supervisor = BoidSupervisor("flock", BIG, [a, b], apply_separation=True)

        supervisor.step()

        assert a.velocity == Vector3(-44, 0, 0)

    def test_bounding_pushes_back_inside(self, make_robot):
        robot = make_robot("a", position=Vector3(80, -80, 10))
        supervisor = BoidSupervisor("flock", Vector3(100, 100, 100), [robot])

        assert supervisor.bounding_position("a") == Vector3(-10, 10, 0)

    def test_lone_robot_only_gets_bounding(self, make_robot):
        robot = make_robot("a", position=Vector3(0, 0, 0), velocity=Vector3(1, 2, 3))
        supervisor = BoidSupervisor("flock", BIG, [robot])

        assert supervisor.move_towards_center("a") == Vector3()
        assert supervisor.match_velocity("a") == Vector3()

        supervisor.step()

        assert robot.velocity == Vector3(1, 2, 3)

    def test_paused_flock_does_not_move_until_message(self, make_robot):
        a = make_robot("a", position=Vector3(0, 0, 0), velocity=Vector3(1, 0, 0))
        b = make_robot("b", position=Vector3(100, 0, 0), velocity=Vector3(1, 0, 0))
        supervisor = BoidSupervisor("flock", BIG, [a, b])
        supervisor.pause()

        supervisor.step()
        assert a.velocity == Vector3(1, 0, 0)

        supervisor.on_osc_message("/go")
        supervisor.step()
        assert a.velocity == Vector3(11, 0, 0)

    def test_tend_to_place(self, make_robot):
        robot = make_robot("a", position=Vector3(100, 0, -100))
        supervisor = BoidSupervisor("flock", BIG, [robot])

        assert supervisor.tend_to_place("a", Vector3(200, 0, 100)) == Vector3(1, 0, 2)

    def test_step_does_not_call_tend_to_place(self, make_robot):
        robot = make_robot("a", position=Vector3(100, 0, 0), velocity=Vector3(0, 0, 0))
        supervisor = BoidSupervisor("flock", BIG, [robot])

        supervisor.step()

        assert robot.velocity == Vector3(0, 0, 0)


class TestEntityOrders:
    def test_order_forwarded_to_owned_robot(self, make_robot, writer):
        robot = make_robot("a", writer=writer)
        supervisor = SimpleSupervisor("bounce", BIG, [robot])

        assert supervisor.on_entity_order(EntityOrder("a", Command("dx", 20))) is True
        assert supervisor.on_entity_order(EntityOrder("a", Command("dx", 20))) is False

        assert writer.frames == [b"dx 20\r\n"]
        assert robot.velocity.x == 2

    def test_order_for_foreign_robot_ignored(self, make_robot, writer):
        robot = make_robot("a", writer=writer)
        supervisor = SimpleSupervisor("bounce", BIG, [robot])

        assert supervisor.on_entity_order(EntityOrder("zz", Command("dx", 20))) is False
        assert writer.frames == []

    def test_subclass_can_veto(self, make_robot, writer):
        class NoReverse(SimpleSupervisor):
            def accepts_order(self, order):
                return (order.command.argument or 0) >= 0

        robot = make_robot("a", writer=writer)
        supervisor = NoReverse("forward", BIG, [robot])

        supervisor.on_entity_order(EntityOrder("a", Command("dx", -20)))
        supervisor.on_entity_order(EntityOrder("a", Command("dx", 20)))

        assert writer.frames == [b"dx 20\r\n"]


def test_membership(make_robot):
    robot = make_robot("a")
    supervisor = SimpleSupervisor("bounce", BIG)

    supervisor.add_robot(robot)
    assert supervisor.owns("a")

    assert supervisor.remove_robot("a") is robot
    assert supervisor.remove_robot("a") is None


def test_create_supervisor_by_type():
    supervisor = create_supervisor("boids", "flock", BIG, apply_separation=True)

    assert isinstance(supervisor, BoidSupervisor)
    assert supervisor.apply_separation is True
    assert isinstance(create_supervisor("simple", "bounce", BIG), SimpleSupervisor)


def test_create_supervisor_unknown_type():
    with pytest.raises(UnknownSupervisorType):
        create_supervisor("swarm", "x", BIG)


def test_supervisor_is_abstract():
    with pytest.raises(TypeError):
        Supervisor("abstract", BIG)  # type: ignore[abstract]
