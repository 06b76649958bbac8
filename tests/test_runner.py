"""End-to-end sessions driven through the runner with a manual clock."""
from __future__ import annotations

import json
import threading
from unittest.mock import patch

import pytest
import requests

from stroop_sequential.clock import TrialClock
from stroop_sequential.config import ExperimentConfig
from stroop_sequential.engine import Phase
from stroop_sequential.errors import InvariantViolation
from stroop_sequential.export import DataSink, DeliveryResult
from stroop_sequential.runner import SessionRunner
from stroop_sequential.stimuli import StimulusSpec

FIXED_STIMULI = (
    StimulusSpec("VERMELHO", "red", True),
    StimulusSpec("VERDE", "blue", False),
    StimulusSpec("AZUL", "blue", True),
)


@pytest.fixture
def fixed_blocks(monkeypatch):
    def _blocks(n_blocks, trials_per_block, **kwargs):
        assert trials_per_block == len(FIXED_STIMULI)
        return tuple(FIXED_STIMULI for _ in range(n_blocks))

    monkeypatch.setattr("stroop_sequential.engine.generate_blocks", _blocks)


def test_single_block_scenario(make_driver, sink, fixed_blocks):
    config = ExperimentConfig(n_blocks=1, trials_per_block=3, practice_trials=0, deadline_ms=2000)
    driver = make_driver(config)
    participant_id = driver.to_first_fixation()

    driver.trial("right", rt_ms=640)
    driver.trial(None)
    driver.trial("left", rt_ms=480)

    runner = driver.runner
    assert runner.phase is Phase.FINISH
    records = list(runner.session.log)
    assert [r.accuracy for r in records] == [True, False, False]
    assert [r.response for r in records] == [True, None, False]
    assert [r.repetition_color for r in records] == [False, False, True]
    assert [r.repetition_word for r in records] == [False, False, False]
    assert [r.x for r in records] == pytest.approx([0.0, 0.5, 1.0])
    assert records[0].reaction_time_ms == pytest.approx(640)
    assert records[1].reaction_time_ms == pytest.approx(2000)
    assert records[1].omitted
    assert records[1].prev_congruent is True
    assert records[2].prev_response is None
    assert records[2].prev_accuracy is False
    assert all(r.participant_id == participant_id for r in records)

    runner.wait_for_delivery(timeout=5)
    assert len(sink.calls) == 1
    sent_id, sent_log = sink.calls[0]
    assert sent_id == participant_id
    assert sent_log == runner.session.log
    assert runner.delivered


def test_second_response_in_a_trial_is_ignored(make_driver, fixed_blocks, time_source):
    config = ExperimentConfig(n_blocks=1, trials_per_block=3, practice_trials=0)
    driver = make_driver(config)
    driver.to_first_fixation()
    driver.show_stimulus()

    time_source.advance(300)
    driver.runner.respond("right")
    time_source.advance(50)
    second = driver.runner.respond("left")

    assert second.stale
    log = driver.runner.session.log
    assert len(log) == 1
    assert log[0].response is True
    assert log[0].reaction_time_ms == pytest.approx(300)


def test_deadline_is_cancelled_by_response(make_driver, fixed_blocks, time_source):
    config = ExperimentConfig(n_blocks=1, trials_per_block=3, practice_trials=0)
    driver = make_driver(config)
    driver.to_first_fixation()
    driver.show_stimulus()
    time_source.advance(100)
    driver.runner.respond("left")

    pending = driver.runner.clock.pending
    assert pending is not None
    assert pending.token != driver.runner.session.window.deadline_token
    time_source.advance(config.deadline_ms)
    driver.runner.poll()
    assert len(driver.runner.session.log) == 1


def test_practice_trials_never_exported(make_driver, sink):
    config = ExperimentConfig(n_blocks=2, trials_per_block=2, practice_trials=5, seed=3)
    driver = make_driver(config)
    driver.to_first_fixation()
    for _ in range(5):
        assert driver.runner.session.in_practice
        driver.trial("right")
    assert not driver.runner.session.in_practice
    assert len(driver.runner.session.log) == 0

    driver.trial("left")
    driver.trial(None)
    assert driver.runner.phase is Phase.INTERBLOCK
    driver.clock.advance(60000)
    assert not driver.runner.poll()
    driver.runner.continue_()
    driver.trial("right")
    driver.trial("right")

    assert driver.runner.phase is Phase.FINISH
    exported = json.loads(driver.runner.serialize())
    assert len(exported) == 4
    assert [row["globalTrial"] for row in exported] == [0, 1, 2, 3]
    assert [row["block"] for row in exported] == [0, 0, 1, 1]
    driver.runner.wait_for_delivery(timeout=5)
    _, sent_log = sink.calls[0]
    assert len(sent_log) == 4


def test_transport_failure_keeps_local_export(make_driver):
    config = ExperimentConfig(
        n_blocks=1,
        trials_per_block=3,
        practice_trials=1,
        data_sink_url="https://example.org/collect",
        seed=9,
    )
    driver = make_driver(config, data_sink=DataSink(config.data_sink_url))
    with patch(
        "stroop_sequential.export.requests.post",
        side_effect=requests.ConnectionError("offline"),
    ) as post:
        driver.to_first_fixation()
        for signal in ("left", "right", None, "left"):
            driver.trial(signal)
        driver.runner.wait_for_delivery(timeout=5)

    post.assert_called_once()
    runner = driver.runner
    assert runner.phase is Phase.FINISH
    assert runner.delivered is False
    assert "offline" in runner.delivery.error
    exported = json.loads(runner.serialize().decode("utf-8"))
    assert len(exported) == 3
    assert exported == runner.session.log.to_json()


def test_listeners_see_phases_in_order(make_driver, fixed_blocks):
    config = ExperimentConfig(n_blocks=1, trials_per_block=3, practice_trials=0)
    driver = make_driver(config)
    seen = []
    driver.runner.add_listener(lambda phase, session: seen.append(phase))
    driver.to_first_fixation()
    driver.trial("right")
    assert seen == [
        Phase.WELCOME,
        Phase.IDENTIFICATION,
        Phase.CONSENT,
        Phase.INSTRUCTIONS,
        Phase.PRACTICE_START,
        Phase.MAIN_START,
        Phase.FIXATION,
        Phase.STIMULUS,
        Phase.ITI,
        Phase.FIXATION,
    ]


def test_reentrant_dispatch_is_rejected(make_driver, fixed_blocks):
    config = ExperimentConfig(n_blocks=1, trials_per_block=3, practice_trials=0)
    driver = make_driver(config)

    class ImmediateClock(TrialClock):
        # fires while the arming event is still being dispatched
        def after(self, duration_ms, callback, *, token=0):
            callback(self.now_ms() + duration_ms)

    driver.runner.start()
    driver.runner.continue_()
    driver.runner.identify("Ana", "Souza")
    driver.runner.continue_()
    driver.runner.clock = ImmediateClock(driver.clock)
    with pytest.raises(InvariantViolation):
        driver.runner.continue_()


def test_failing_sink_is_reported_not_raised(make_driver, fixed_blocks):
    config = ExperimentConfig(n_blocks=1, trials_per_block=3, practice_trials=0)

    class BrokenSink:
        def transmit(self, participant_id, log):
            raise OSError("socket closed")

    driver = make_driver(config, data_sink=BrokenSink())
    driver.to_first_fixation()
    for signal in ("right", "left", "right"):
        driver.trial(signal)

    runner = driver.runner
    assert runner.phase is Phase.FINISH
    result = runner.wait_for_delivery(timeout=5)
    assert result is not None
    assert result.delivered is False
    assert result.error == "socket closed"
    assert not runner.delivered
    assert len(json.loads(runner.serialize())) == 3


def test_finish_is_announced_before_the_send(make_driver, fixed_blocks):
    config = ExperimentConfig(n_blocks=1, trials_per_block=3, practice_trials=0)
    events = []
    release = threading.Event()

    class SlowSink:
        def transmit(self, participant_id, log):
            events.append("transmit")
            release.wait(timeout=5)
            return DeliveryResult(delivered=True)

    driver = make_driver(config, data_sink=SlowSink())
    driver.runner.add_listener(lambda phase, session: events.append(phase))
    driver.to_first_fixation()
    for signal in ("right", "right", "right"):
        driver.trial(signal)

    # the frame loop is back in control while the sink is still blocked
    assert driver.runner.phase is Phase.FINISH
    assert driver.runner.delivery is None
    release.set()
    assert driver.runner.wait_for_delivery(timeout=5).delivered
    assert events.index(Phase.FINISH) < events.index("transmit")



def test_invalid_config_is_rejected(time_source):
    with pytest.raises(ValueError):
        SessionRunner(ExperimentConfig(iti_min_ms=2000, iti_max_ms=1000), time_source=time_source)
