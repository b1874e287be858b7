import pytest

from aruco_fiducials.gate import DetectionGate, GateDecision


def test_decimation_admits_one_in_three_starting_at_zero():
    gate = DetectionGate(decimation=3)
    decisions = [gate.admit() for _ in range(9)]
    admitted = [i for i, d in enumerate(decisions) if d is GateDecision.ADMITTED]
    assert admitted == [0, 3, 6]
    assert decisions[1] is GateDecision.DROPPED_DECIMATION
    assert gate.frame_counter == 9


def test_disabled_gate_drops_everything_without_counting():
    gate = DetectionGate(decimation=3, enabled=False)
    assert all(gate.admit() is GateDecision.DROPPED_DISABLED for _ in range(10))
    assert gate.frame_counter == 0


def test_reenabling_resumes_from_the_same_counter():
    gate = DetectionGate(decimation=3)
    assert gate.admit() is GateDecision.ADMITTED
    gate.set_enabled(False)
    gate.set_enabled(False)
    assert gate.admit() is GateDecision.DROPPED_DISABLED
    gate.set_enabled(True)
    assert [gate.admit() for _ in range(3)] == [
        GateDecision.DROPPED_DECIMATION,
        GateDecision.DROPPED_DECIMATION,
        GateDecision.ADMITTED,
    ]


def test_decimation_of_one_admits_every_frame():
    gate = DetectionGate(decimation=1)
    assert all(gate.admit() is GateDecision.ADMITTED for _ in range(5))


@pytest.mark.parametrize("bad", [0, -3])
def test_decimation_must_be_positive(bad):
    with pytest.raises(ValueError):
        DetectionGate(decimation=bad)
