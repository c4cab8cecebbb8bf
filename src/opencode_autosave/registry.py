"""
In-memory registry of tracked sessions and their parent/child links.

Creation events for a child can arrive before the event for its parent.
Such children are parked in a pending buffer keyed by the parent id and are
adopted the moment the parent registers.
"""

from __future__ import annotations

from opencode_autosave.logging import get_logger
from opencode_autosave.models import Session

logger = get_logger("registry")


class SessionRegistry:
    """
    Owns every tracked :class:`Session` and the pending-child buffer.

    All operations are plain dictionary manipulations. Unknown ids are
    no-ops, never errors; callers check return values.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._pending_children: dict[str, list[str]] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    @property
    def pending_children(self) -> dict[str, list[str]]:
        """A copy of the pending-child buffer (parent id -> waiting child ids)."""
        return {k: list(v) for k, v in self._pending_children.items()}

    def register(
        self,
        session_id: str,
        title: str = "",
        parent_id: str | None = None,
    ) -> Session:
        """
        Create (or replace) a session.

        A child is linked to its parent immediately when the parent is known,
        otherwise it waits in the pending buffer. Any children already waiting
        for *session_id* are adopted.
        """
        previous = self._sessions.get(session_id)
        session = Session(id=session_id, title=title, parent_id=parent_id)

        if previous is not None:
            logger.debug("Re-registering session %s", session_id)
            session.child_session_ids = previous.child_session_ids
            session.file_path = previous.file_path
            session.created_at = previous.created_at
            if previous.parent_id and previous.parent_id != parent_id:
                self._unlink(session_id, previous.parent_id)

        self._sessions[session_id] = session

        if parent_id:
            parent = self._sessions.get(parent_id)
            if parent is not None:
                if session_id not in parent.child_session_ids:
                    parent.child_session_ids.append(session_id)
            else:
                waiting = self._pending_children.setdefault(parent_id, [])
                if session_id not in waiting:
                    waiting.append(session_id)
                logger.debug(
                    "Parent %s of session %s not registered yet, buffering",
                    parent_id,
                    session_id,
                )

        adopted = self._pending_children.pop(session_id, None)
        if adopted:
            for child_id in adopted:
                if child_id not in session.child_session_ids:
                    session.child_session_ids.append(child_id)
            logger.debug("Session %s adopted pending children %s", session_id, adopted)

        return session

    def get(self, session_id: str) -> Session | None:
        return self._sessions.get(session_id)

    def remove(self, session_id: str) -> None:
        """
        Forget a session.

        Children are not removed; they stay individually addressable until
        their own deletion. The session is dropped from its parent's child
        list and from the pending buffer.
        """
        session = self._sessions.pop(session_id, None)
        if session is None:
            return
        if session.parent_id:
            self._unlink(session_id, session.parent_id)

    def children_of(self, parent_id: str) -> list[Session]:
        """Resolve a parent's child ids to sessions, skipping removed ones."""
        parent = self._sessions.get(parent_id)
        if parent is None:
            return []
        return [
            self._sessions[child_id]
            for child_id in parent.child_session_ids
            if child_id in self._sessions
        ]

    def descendants_of(self, parent_id: str) -> list[Session]:
        """All registered descendants, depth-first in child-list order."""
        result: list[Session] = []
        seen: set[str] = {parent_id}
        stack = list(reversed(self.children_of(parent_id)))
        while stack:
            child = stack.pop()
            if child.id in seen:
                continue
            seen.add(child.id)
            result.append(child)
            stack.extend(reversed(self.children_of(child.id)))
        return result

    def update_title(self, session_id: str, title: str) -> None:
        session = self._sessions.get(session_id)
        if session is not None:
            session.title = title

    def is_root(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        return session.is_root if session else False

    def root_of(self, session_id: str, max_depth: int = 32) -> Session | None:
        """
        Walk ``parent_id`` links up to the root session.

        Returns ``None`` when the session or one of its ancestors is not
        registered, when the chain loops, or when it is deeper than
        *max_depth*.
        """
        visited: set[str] = set()
        current = self._sessions.get(session_id)

        while current is not None:
            if current.parent_id is None:
                return current
            if current.id in visited or len(visited) >= max_depth:
                logger.warning(
                    "Could not resolve root of session %s (cycle or depth > %d)",
                    session_id,
                    max_depth,
                )
                return None
            visited.add(current.id)
            current = self._sessions.get(current.parent_id)

        return None

    def root_sessions(self) -> list[Session]:
        return [s for s in self._sessions.values() if s.is_root]

    def clear(self) -> None:
        self._sessions.clear()
        self._pending_children.clear()

    def _unlink(self, child_id: str, parent_id: str) -> None:
        parent = self._sessions.get(parent_id)
        if parent is not None and child_id in parent.child_session_ids:
            parent.child_session_ids.remove(child_id)

        waiting = self._pending_children.get(parent_id)
        if waiting and child_id in waiting:
            waiting.remove(child_id)
            if not waiting:
                del self._pending_children[parent_id]
