#!filepath: tests/observability/test_instrumentation.py
import time

from loguru import logger

from first_contrib.observability.instrumentation import Instrumentation, NoOpInstrumentation


def test_instrumentation_timer():
    inst = Instrumentation(enabled=True)

    with inst.timer("stream_scan_keys"):
        time.sleep(0.01)

    assert inst.timeline["stream_scan_keys"] > 0


def test_parent_scope_not_recorded():
    inst = Instrumentation(enabled=True)

    with inst.timer("PartitionWriteStep", record=False):
        with inst.timer("partition_write"):
            pass

    assert list(inst.timeline) == ["partition_write"]


def test_disabled_and_noop():
    inst = Instrumentation(enabled=False)
    with inst.timer("x"):
        pass
    assert inst.timeline == {}

    noop = NoOpInstrumentation()
    with noop.timer("x"):
        pass
    assert noop.generate_timeline_report("t") == 0.0


def test_generate_timeline_report():
    inst = Instrumentation(enabled=True)

    with inst.timer("phase_X"):
        time.sleep(0.005)

    captured = []
    sink_id = logger.add(lambda msg: captured.append(str(msg)))
    total = inst.generate_timeline_report("dataset/contributions_model full")
    logger.remove(sink_id)

    output = "\n".join(captured)
    assert "phase_X" in output
    assert "dataset/contributions_model full" in output
    assert total > 0

    inst.reset()
    assert inst.timeline == {}
