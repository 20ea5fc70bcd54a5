from __future__ import annotations

from pathlib import Path


class _Clock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_first_process_becomes_leader(tmp_path: Path) -> None:
    from auto_accept.host.leader import LeaderElection
    from auto_accept.host.store import StateStore

    store = StateStore(tmp_path / "state.json")
    clock = _Clock()
    election = LeaderElection(store, "cursor", owner_id="A", clock=clock)

    decision = election.tick()
    assert decision.is_leader is True
    assert decision.changed is True
    assert store.get("cursor-instance-lock") == "A"
    assert store.get("cursor-instance-lock-ping") == 1_000.0

    clock.now += 5
    again = election.tick()
    assert again.is_leader is True
    assert again.changed is False


def test_fresh_foreign_heartbeat_means_standby_then_takeover_when_stale(tmp_path: Path) -> None:
    from auto_accept.host.leader import LeaderElection
    from auto_accept.host.store import StateStore

    store = StateStore(tmp_path / "state.json")
    clock = _Clock()
    a = LeaderElection(store, "cursor", owner_id="A", clock=clock)
    b = LeaderElection(store, "cursor", owner_id="B", clock=clock)

    assert a.tick().is_leader is True
    clock.now += 10
    standby = b.tick()
    assert standby.is_leader is False
    assert standby.owner_id == "A"
    assert standby.changed is False
    assert store.get("cursor-instance-lock") == "A"

    # A stops heartbeating; once the ping is 15 s old B takes over.
    clock.now += 6
    takeover = b.tick()
    assert takeover.is_leader is True
    assert takeover.changed is True
    assert store.get("cursor-instance-lock") == "B"

    demoted = a.tick()
    assert demoted.is_leader is False
    assert demoted.changed is True


def test_locks_are_per_ide(tmp_path: Path) -> None:
    from auto_accept.host.leader import LeaderElection
    from auto_accept.host.store import StateStore

    store = StateStore(tmp_path / "state.json")
    clock = _Clock()
    assert LeaderElection(store, "cursor", owner_id="A", clock=clock).tick().is_leader is True
    assert LeaderElection(store, "antigravity", owner_id="B", clock=clock).tick().is_leader is True


def test_owner_ids_are_unique() -> None:
    from auto_accept.host.leader import make_owner_id

    assert make_owner_id() != make_owner_id()
