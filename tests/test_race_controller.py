import json

from racetimer.core.config_store import ConfigModel
from racetimer.core.model import (
    ACTIVE_CARD,
    CardState,
    RaceMode,
    RaceResult,
    Racer,
    StatusLine,
    WAITING_CARD,
)
from racetimer.render.results_renderer import IN_PROGRESS_TEXT, NO_RESULTS_TEXT

ROSTER = [{"id": 1, "name": "Al"}, {"id": 2, "name": "Bea"}, {"id": 3, "name": "Cy"}]


def started_controller(make_controller, transport, mode=b"race", cfg=None):
    controller = make_controller(cfg)
    controller.start()
    transport.respond("/racers", 200, ROSTER)
    transport.respond("/mode", 200, mode)
    controller.poller.stop()
    # startup poll finds the authority not yet reachable
    transport.pending("/results")[0].fail("not up yet")
    return controller


def idle_snapshot(controller):
    m = controller.model
    return (
        m.session.active,
        m.session.start_ms,
        controller.clock.armed,
        m.status,
        tuple(m.results),
        m.cards.snapshot(),
    )


# --- Startup ------------------------------------------------------------------

def test_start_loads_roster_and_mode(make_controller, transport, recorder):
    controller = make_controller()
    mode_events = recorder(controller.mode_changed)
    racers_events = recorder(controller.racers_changed)

    controller.start()
    transport.respond("/racers", 200, ROSTER)
    transport.respond("/mode", 200, b"lap")

    assert controller.model.racers == [Racer(1, "Al"), Racer(2, "Bea"), Racer(3, "Cy")]
    assert controller.model.mode is RaceMode.LAP
    assert mode_events.last == ("lap", "Lap Times")
    assert racers_events.last[0][1].name == "Bea"
    assert len(transport.requests("/results")) == 1


def test_startup_fetch_failures_keep_defaults(make_controller, transport):
    controller = make_controller()
    controller.start()
    transport.pending("/racers")[0].fail("refused")
    transport.respond("/mode", 500)

    assert controller.model.racers == []
    assert controller.model.mode is RaceMode.RACE


# --- Start / stop ---------------------------------------------------------------

def test_start_race_arms_session_and_clock(make_controller, transport, fake_now, recorder):
    controller = started_controller(make_controller, transport)
    results = recorder(controller.results_changed)
    status = recorder(controller.status_changed)

    controller.start_race()
    assert controller.model.session.active is False  # nothing before the reply
    transport.respond("/start", 200)

    assert controller.model.session.active is True
    assert controller.model.session.start_ms == fake_now.value
    assert controller.clock.armed is True
    assert status.last == ("RACING", "#00ff41")
    assert results.last[0].placeholder == IN_PROGRESS_TEXT
    assert set(controller.model.cards.snapshot().values()) == {ACTIVE_CARD}


def test_start_race_in_lap_mode_leaves_cards_waiting(make_controller, transport):
    controller = started_controller(make_controller, transport, mode=b"lap")

    controller.start_race()
    transport.respond("/start", 200)

    assert controller.model.session.active is True
    assert set(controller.model.cards.snapshot().values()) == {WAITING_CARD}


def test_failed_start_shows_error_then_recovers(make_controller, transport, recorder):
    controller = started_controller(make_controller, transport)
    status = recorder(controller.status_changed)

    controller.start_race()
    transport.respond("/start", 500)

    assert controller.model.session.active is False
    assert controller.clock.armed is False
    assert controller.model.status is StatusLine.ERROR
    assert status.last == ("ERROR", "#ff0055")

    controller.start_race()
    transport.respond("/start", 200)

    assert controller.model.session.active is True
    assert controller.model.status is StatusLine.RACING


def test_start_network_error_shows_error(make_controller, transport):
    controller = started_controller(make_controller, transport)

    controller.start_race()
    transport.pending("/start")[0].fail("unreachable")

    assert controller.model.status is StatusLine.ERROR
    assert controller.model.session.active is False


def test_stop_race_disarms(make_controller, transport, recorder):
    controller = started_controller(make_controller, transport)
    active = recorder(controller.race_active_changed)
    controller.start_race()
    transport.respond("/start", 200)

    controller.stop_race()
    transport.respond("/stop", 200)

    assert controller.model.session.active is False
    assert controller.clock.armed is False
    assert controller.model.status is StatusLine.STOPPED
    assert active.last == (False,)


def test_failed_stop_is_not_surfaced(make_controller, transport, caplog):
    controller = started_controller(make_controller, transport)
    controller.start_race()
    transport.respond("/start", 200)

    controller.stop_race()
    transport.respond("/stop", 502)

    assert controller.model.status is StatusLine.RACING
    assert controller.model.session.active is True
    assert "Failed to stop race" in caplog.text


def test_slow_start_after_stop_still_applies(make_controller, transport):
    # no cancellation: a /start reply landing after /stop re-arms the race
    controller = started_controller(make_controller, transport)

    controller.start_race()
    controller.stop_race()
    transport.respond("/stop", 200)
    assert controller.model.status is StatusLine.STOPPED

    transport.respond("/start", 200)

    assert controller.model.session.active is True
    assert controller.clock.armed is True
    assert controller.model.status is StatusLine.RACING


# --- Reset / mode -----------------------------------------------------------------

def test_reset_gives_clean_idle_slate(make_controller, transport, recorder):
    controller = started_controller(make_controller, transport)
    clock_text = recorder(controller.clock_changed)
    results = recorder(controller.results_changed)
    controller.start_race()
    transport.respond("/start", 200)
    controller.poller._on_tick()
    transport.respond("/results", 200, [{"racer": 1, "name": "Al", "position": 1, "time": 900}])

    controller.reset_race()
    assert controller.model.session.active is False
    assert controller.clock.armed is False
    transport.respond("/stop", 200)

    assert controller.model.status is StatusLine.IDLE
    assert clock_text.last == ("00:00.000",)
    assert results.last[0].placeholder == NO_RESULTS_TEXT
    assert controller.model.results == ()
    assert set(controller.model.cards.snapshot().values()) == {WAITING_CARD}


def test_reset_applies_clean_slate_even_when_stop_fails(make_controller, transport):
    controller = started_controller(make_controller, transport)
    controller.start_race()
    transport.respond("/start", 200)

    controller.reset_race()
    transport.pending("/stop")[0].fail("refused")

    assert controller.model.status is StatusLine.IDLE
    assert controller.model.session.active is False


def test_reset_is_idempotent(make_controller, transport):
    controller = started_controller(make_controller, transport)
    transport.auto[("GET", "/stop")] = (200, b"")

    controller.reset_race()
    once = idle_snapshot(controller)
    controller.reset_race()
    twice = idle_snapshot(controller)

    assert once == twice
    assert once[3] is StatusLine.IDLE


def test_set_mode_while_racing_resets_race(make_controller, transport, recorder):
    controller = started_controller(make_controller, transport)
    mode_events = recorder(controller.mode_changed)
    controller.start_race()
    transport.respond("/start", 200)

    controller.set_mode(RaceMode.LAP)
    assert controller.model.session.active is True  # not before the reply
    mode_request = transport.respond("/mode", 200)

    assert mode_request.body == b"lap"
    assert controller.model.mode is RaceMode.LAP
    assert mode_events.last == ("lap", "Lap Times")
    assert controller.model.session.active is False
    assert controller.clock.armed is False
    assert len(transport.pending("/stop")) == 1

    transport.respond("/stop", 200)
    assert controller.model.status is StatusLine.IDLE


def test_failed_set_mode_changes_nothing(make_controller, transport):
    controller = started_controller(make_controller, transport)
    controller.start_race()
    transport.respond("/start", 200)

    controller.set_mode("lap")
    transport.respond("/mode", 400)

    assert controller.model.mode is RaceMode.RACE
    assert controller.model.session.active is True
    assert transport.pending("/stop") == []


# --- Polling / rendering ------------------------------------------------------------

def test_poll_success_renders_and_marks_connected(make_controller, transport, recorder):
    controller = started_controller(make_controller, transport)
    connection = recorder(controller.connection_changed)
    last_update = recorder(controller.last_update_changed)
    results = recorder(controller.results_changed)

    controller.poller._on_tick()
    transport.respond("/results", 200, [
        {"racer": 3, "name": "Cy", "position": 3, "time": 3000},
        {"racer": 1, "name": "Al", "position": 1, "time": 1000},
    ])

    output = results.last[0]
    assert [row.name for row in output.rows] == ["Al", "Cy"]
    assert connection.last == (True, "#00ff41")
    assert last_update.last == ("12:34:56",)
    cards = controller.model.cards.snapshot()
    assert cards[1].label == "P1"
    assert cards[3].state is CardState.FINISHED
    assert cards[2] == WAITING_CARD


def test_poll_failure_keeps_results_visible(make_controller, transport, recorder):
    controller = started_controller(make_controller, transport)
    controller.poller._on_tick()
    transport.respond("/results", 200, [{"racer": 1, "name": "Al", "position": 1, "time": 1000}])

    connection = recorder(controller.connection_changed)
    results = recorder(controller.results_changed)
    controller.poller._on_tick()
    transport.respond("/results", 500)

    assert connection.last == (False, "#ff0055")
    assert results.calls == []
    assert controller.model.results == (RaceResult(1, "Al", 1, 1000),)


def test_connection_signal_only_on_change(make_controller, transport, recorder):
    controller = started_controller(make_controller, transport)
    connection = recorder(controller.connection_changed)

    for _ in range(3):
        controller.poller._on_tick()
        transport.respond("/results", 200, [])

    assert connection.calls == [(True, "#00ff41")]


def test_reordered_polls_show_older_data_without_guard(make_controller, transport, recorder):
    cfg = ConfigModel(discard_stale_results=False)
    controller = started_controller(make_controller, transport, cfg=cfg)
    results = recorder(controller.results_changed)

    controller.poller._on_tick()  # A
    controller.poller._on_tick()  # B
    request_a, request_b = transport.pending("/results")
    request_b.reply(200, [{"racer": 2, "name": "Bea", "position": 1, "time": 2000}])
    request_a.reply(200, [{"racer": 1, "name": "Al", "position": 1, "time": 1000}])

    assert results.last[0].rows[0].name == "Al"
    assert controller.model.results == (RaceResult(1, "Al", 1, 1000),)


def test_reordered_polls_keep_newer_data_with_guard(make_controller, transport, recorder):
    controller = started_controller(make_controller, transport)
    results = recorder(controller.results_changed)

    controller.poller._on_tick()  # A
    controller.poller._on_tick()  # B
    request_a, request_b = transport.pending("/results")
    request_b.reply(200, [{"racer": 2, "name": "Bea", "position": 1, "time": 2000}])
    request_a.reply(200, [{"racer": 1, "name": "Al", "position": 1, "time": 1000}])

    assert results.last[0].rows[0].name == "Bea"
    assert len(results.calls) == 1


def test_lap_mode_results_leave_cards_alone(make_controller, transport):
    controller = started_controller(make_controller, transport, mode=b"lap")

    controller.poller._on_tick()
    transport.respond("/results", 200, [{"racer": 1, "name": "Al", "lapTime": 800, "timestamp": 800}])

    assert set(controller.model.cards.snapshot().values()) == {WAITING_CARD}


def test_failed_startup_mode_is_reconciled_by_polling(make_controller, transport, recorder):
    controller = make_controller()
    connection = recorder(controller.connection_changed)
    results = recorder(controller.results_changed)
    laps = [{"racer": 1, "name": "Al", "lapTime": 800, "timestamp": 800}]

    controller.start()
    transport.respond("/racers", 200, ROSTER)
    transport.respond("/mode", 500)
    controller.poller.stop()
    transport.respond("/results", 200, laps)

    assert controller.model.mode is RaceMode.RACE
    assert results.last[0].placeholder == NO_RESULTS_TEXT

    controller.poller._on_tick()
    transport.respond("/mode", 200, b"lap")
    transport.respond("/results", 200, laps)

    assert controller.model.mode is RaceMode.LAP
    assert results.last[0].rows[0].time == "Lap: 00:00.800"
    assert connection.calls == [(True, "#00ff41")]


def test_polled_mode_change_updates_labels_without_reset(make_controller, transport, recorder):
    controller = started_controller(make_controller, transport)
    mode_events = recorder(controller.mode_changed)
    controller.start_race()
    transport.respond("/start", 200)

    controller.poller._on_tick()
    transport.respond("/mode", 200, b"race")
    assert mode_events.calls == []

    controller.poller._on_tick()
    transport.respond("/mode", 200, b"lap")

    assert mode_events.calls == [("lap", "Lap Times")]
    assert controller.model.session.active is True
    assert transport.pending("/stop") == []


def test_results_polled_before_mode_switch_keep_connection_healthy(make_controller, transport, recorder):
    controller = started_controller(make_controller, transport)
    connection = recorder(controller.connection_changed)
    results = recorder(controller.results_changed)

    controller.poller._on_tick()  # issued while still in race mode
    controller.set_mode(RaceMode.LAP)
    (mode_write,) = [r for r in transport.pending("/mode") if r.method == "POST"]
    mode_write.reply(200)

    transport.respond("/results", 200, [{"racer": 1, "name": "Al", "position": 1, "time": 900}])
    # the mode read issued before the write lands late and is ignored
    transport.respond("/mode", 200, b"race")

    assert controller.model.mode is RaceMode.LAP
    assert connection.calls == [(True, "#00ff41")]
    assert results.last[0].placeholder == NO_RESULTS_TEXT
    assert controller.model.results == (RaceResult(1, "Al", 1, 900),)


# --- Renaming --------------------------------------------------------------------------

class ScriptedPrompt:
    def __init__(self, answers):
        self.answers = answers
        self.asked = None
        self.complete = None

    def request(self, racers, on_complete):
        self.asked = list(racers)
        self.complete = on_complete

    def answer(self):
        self.complete(self.answers)


def test_edit_racers_persists_changed_names_then_refetches(make_controller, transport):
    controller = started_controller(make_controller, transport)
    prompt = ScriptedPrompt({1: "Alice", 2: None, 3: "Cy"})

    controller.edit_racers(prompt)
    assert [r.id for r in prompt.asked] == [1, 2, 3]
    prompt.answer()

    renames = transport.requests("/racers", method="POST")
    assert [json.loads(r.body) for r in renames] == [{"id": 1, "name": "Alice"}]
    # roster is fetched only after every rename has completed
    assert transport.pending("/racers") == renames

    renames[0].reply(200)
    refetch = transport.requests("/racers", method="GET")[-1]
    assert refetch.done is False
    refetch.reply(200, [{"id": 1, "name": "Alice"}, {"id": 2, "name": "Bea"}, {"id": 3, "name": "Cy"}])
    assert controller.model.racers[0] == Racer(1, "Alice")


def test_edit_racers_partial_failure_still_refetches(make_controller, transport):
    controller = started_controller(make_controller, transport)
    prompt = ScriptedPrompt({1: "Alice", 2: "Beatrice"})

    controller.edit_racers(prompt)
    prompt.answer()
    first, second = transport.requests("/racers", method="POST")

    second.fail("refused")
    assert len(transport.requests("/racers", method="GET")) == 1  # startup fetch only
    first.reply(200)

    gets = transport.requests("/racers", method="GET")
    assert len(gets) == 2
    assert gets[-1].done is False


def test_edit_racers_with_no_answers_only_refetches(make_controller, transport):
    controller = started_controller(make_controller, transport)
    prompt = ScriptedPrompt({})

    controller.edit_racers(prompt)
    prompt.answer()

    assert transport.requests("/racers", method="POST") == []
    assert len(transport.pending("/racers")) == 1


def test_edit_racers_without_roster_does_not_prompt(make_controller):
    controller = make_controller()
    prompt = ScriptedPrompt({1: "x"})

    controller.edit_racers(prompt)

    assert prompt.asked is None
