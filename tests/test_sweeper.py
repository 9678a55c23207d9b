import threading

from conftest import incident_doc
from disaster_hub.agent.sweeper import BackgroundSweeper, SweepReport
from disaster_hub.agent.synthesizer import SynthesisResult


def _seed(database, *docs) -> None:
    for doc in docs:
        database["incident"].insert_one(doc)


def test_sweep_creates_missions_for_qualifying_incidents(database, incidents, missions, synthesizer) -> None:
    _seed(
        database,
        incident_doc(_id="dispatched", dispatched=True, needs=[]),
        incident_doc(_id="explicit-needs", dispatched=False, needs=["Water", "Shelter"]),
        incident_doc(_id="idle", dispatched=False, needs=[]),
        incident_doc(_id="no-location", dispatched=True, location=None),
    )
    sweeper = BackgroundSweeper(incidents, missions, synthesizer)

    report = sweeper.sweep()

    assert report.checked == 4
    assert report.created == 3
    assert report.skipped == 2
    assert report.error_count == 0
    assert database["mission"].count_documents({"incident_id": "dispatched"}) == 1
    assert database["mission"].count_documents({"incident_id": "explicit-needs"}) == 2
    assert database["mission"].count_documents({"incident_id": "idle"}) == 0


def test_general_response_need_alone_does_not_qualify(database, incidents, missions, synthesizer) -> None:
    _seed(database, incident_doc(_id="generic", dispatched=False, needs=["General Response", "Water"]))
    sweeper = BackgroundSweeper(incidents, missions, synthesizer)

    report = sweeper.sweep()

    assert report.created == 0
    assert report.skipped == 1


def test_second_sweep_skips_incidents_with_missions(database, incidents, missions, synthesizer) -> None:
    _seed(database, incident_doc(_id="a", dispatched=True))
    sweeper = BackgroundSweeper(incidents, missions, synthesizer)

    sweeper.sweep()
    report = sweeper.sweep()

    assert report.created == 0
    assert report.skipped == 1
    assert database["mission"].count_documents({}) == 2


def test_one_incident_failure_does_not_stop_sweep(database, incidents, missions) -> None:
    _seed(
        database,
        incident_doc(_id="bad", dispatched=True),
        incident_doc(_id="good", dispatched=True),
    )

    class _FlakySynthesizer:
        def synthesize(self, incident):
            if str(incident.incident_id) == "bad":
                raise RuntimeError("enrichment queue full")
            return SynthesisResult(incident_id=str(incident.incident_id), created=2)

    report = BackgroundSweeper(incidents, missions, _FlakySynthesizer()).sweep()

    assert report.errors == {"bad": "enrichment queue full"}
    assert report.created == 2
    assert report.to_dict()["errors"] == 1


def test_concurrent_sweep_is_rejected_without_writes(database, incidents, missions) -> None:
    _seed(database, incident_doc(_id="slow", dispatched=True))
    entered = threading.Event()
    release = threading.Event()

    class _BlockingSynthesizer:
        def synthesize(self, incident):
            entered.set()
            release.wait(5)
            return SynthesisResult(incident_id=str(incident.incident_id))

    sweeper = BackgroundSweeper(incidents, missions, _BlockingSynthesizer())
    first = threading.Thread(target=sweeper.sweep)
    first.start()
    assert entered.wait(5)

    inserts_before = database["mission"].insert_calls
    second = sweeper.sweep()

    assert second.already_running is True
    assert second.to_dict() == {"skipped": True}
    assert database["mission"].insert_calls == inserts_before

    release.set()
    first.join(5)
    assert sweeper.is_sweeping is False


def test_lock_released_after_fatal_error(incidents, missions, synthesizer, monkeypatch) -> None:
    def broken_list_all():
        raise ConnectionError("no primary")

    monkeypatch.setattr(incidents, "list_all", broken_list_all)
    sweeper = BackgroundSweeper(incidents, missions, synthesizer)

    report = sweeper.sweep()

    assert report.fatal_error == "no primary"
    assert report.to_dict()["error"] == "no primary"
    assert sweeper.is_sweeping is False


def test_heartbeat_called_after_sweep(incidents, missions, synthesizer) -> None:
    beats = []
    sweeper = BackgroundSweeper(incidents, missions, synthesizer, heartbeat=lambda: beats.append(1))

    sweeper.sweep()

    assert beats == [1]


def test_start_runs_immediately_and_stop_cancels(database, incidents, missions, synthesizer) -> None:
    _seed(database, incident_doc(_id="boot", dispatched=True, needs=["Water"]))
    swept = threading.Event()
    sweeper = BackgroundSweeper(incidents, missions, synthesizer, heartbeat=swept.set)

    sweeper.start(interval_seconds=3600)
    try:
        assert swept.wait(5)
        assert sweeper.is_started
        sweeper.start(interval_seconds=3600)
    finally:
        sweeper.stop(timeout=5)

    assert sweeper.is_started is False
    assert database["mission"].count_documents({"incident_id": "boot"}) == 1


def test_independent_instances_do_not_share_lock(incidents, missions, synthesizer) -> None:
    first = BackgroundSweeper(incidents, missions, synthesizer)
    second = BackgroundSweeper(incidents, missions, synthesizer)

    with first._sweep_lock:
        assert first.sweep().already_running is True
        assert second.sweep().already_running is False


def test_report_summary_format() -> None:
    report = SweepReport(checked=5, created=3, skipped=2, duration_ms=12)

    summary = report.summary()

    assert "checked=5" in summary
    assert "created=3" in summary
    assert "skipped=2" in summary
    assert "errors=0" in summary


def test_restart_during_inflight_sweep_leaves_one_loop(incidents, missions, synthesizer, monkeypatch) -> None:
    entered = threading.Event()
    gate = threading.Event()
    real_list_all = incidents.list_all

    def blocking_list_all():
        entered.set()
        gate.wait(5)
        return real_list_all()

    monkeypatch.setattr(incidents, "list_all", blocking_list_all)
    sweeper = BackgroundSweeper(incidents, missions, synthesizer)

    sweeper.start(interval_seconds=0.05)
    first_thread = sweeper._thread
    assert entered.wait(5)

    sweeper.stop()
    sweeper.start(interval_seconds=3600)
    second_thread = sweeper._thread
    try:
        gate.set()
        first_thread.join(5)

        alive = [thread for thread in threading.enumerate() if thread.name == "mission-sweeper"]
        assert first_thread.is_alive() is False
        assert alive == [second_thread]
    finally:
        sweeper.stop(timeout=5)
