"""Heartbeat lease that picks the one host process allowed to drive automation.

Every sync tick each process runs `tick()`. A process becomes (or stays) leader
when the lease is its own or the foreign heartbeat is older than the staleness
window; otherwise it stands by. The lease is never deleted: a dead leader simply
stops refreshing it.

Two processes can both believe they lead for at most one staleness window (e.g.
after a clock jump). Leader actions are idempotent `inject` calls, so this is
tolerated rather than fenced.
"""

from __future__ import annotations

import logging
import os
import socket
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from .store import StateStore, lock_keys

_LOGGER = logging.getLogger("auto_accept.host.leader")

STALENESS_S = 15.0


def make_owner_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}:{uuid.uuid4().hex[:8]}"


@dataclass(frozen=True)
class LeaderDecision:
    is_leader: bool
    changed: bool
    owner_id: str | None


class LeaderElection:
    def __init__(
        self,
        store: StateStore,
        ide: str,
        *,
        owner_id: str | None = None,
        staleness_s: float = STALENESS_S,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.owner_id = owner_id or make_owner_id()
        self.lock_key, self.ping_key = lock_keys(ide)
        self.staleness_s = staleness_s
        self.clock = clock
        self.is_leader = False

    def tick(self) -> LeaderDecision:
        now = self.clock()
        with self.store.transaction() as data:
            holder = data.get(self.lock_key)
            try:
                last_ping = float(data.get(self.ping_key) or 0)
            except (TypeError, ValueError):
                last_ping = 0.0
            foreign = bool(holder) and holder != self.owner_id
            if foreign and now - last_ping < self.staleness_s:
                leader = False
                owner = str(holder)
            else:
                data[self.lock_key] = self.owner_id
                data[self.ping_key] = now
                leader = True
                owner = self.owner_id
                if foreign:
                    _LOGGER.info("Taking over stale lease from %s (age %.1fs)", holder, now - last_ping)

        changed = leader != self.is_leader
        self.is_leader = leader
        if changed:
            _LOGGER.info("Leadership: %s (owner=%s)", "leader" if leader else "standby", owner)
        return LeaderDecision(is_leader=leader, changed=changed, owner_id=owner)


__all__ = ["STALENESS_S", "LeaderDecision", "LeaderElection", "make_owner_id"]
