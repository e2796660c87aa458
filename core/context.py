"""
core/context.py -- Per-request context handed to every resolver.

One Context is built per GraphQL request by api/routes/graphql.py. It carries
the list stores, the decoded session (if any) and the session capability.

sudo() returns a copy with access control skipped. The copy shares the
session_changes dict with the original, so a session started through a sudo
context still reaches the HTTP response.

Layer rule: no imports from api/ or auth/. The session capability is typed
by the SessionPort protocol below; auth/session.py provides the real one.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from core.store import ListStore


class SessionPort(Protocol):
    def start(self, list_key: str, item_id: Any) -> str: ...


@dataclass
class Context:
    lists: dict[str, ListStore]
    sessions: Optional[SessionPort] = None
    session: Optional[dict[str, Any]] = None
    skip_access_control: bool = False
    # Filled by start_session()/end_session(); read by the HTTP layer to set
    # or clear the session cookie on the way out.
    session_changes: dict[str, Any] = field(default_factory=dict)

    def sudo(self) -> Context:
        return dataclasses.replace(self, skip_access_control=True)

    async def start_session(self, list_key: str, item_id: Any) -> str:
        if self.sessions is None:
            raise RuntimeError("No session strategy configured; cannot start a session.")
        token = self.sessions.start(list_key, item_id)
        self.session = {"listKey": list_key, "itemId": str(item_id)}
        self.session_changes["token"] = token
        self.session_changes.pop("ended", None)
        return token

    async def end_session(self) -> None:
        self.session = None
        self.session_changes.pop("token", None)
        self.session_changes["ended"] = True
