"""Video status state machine.

    pending → uploading → transcribing → processing → embedding → completed
    pending → transcribing
    uploading | transcribing | processing | embedding → failed

Recovery and reprocessing re-enter at `transcribing` from any status.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from vidscribe.db.video_store import VideoStore
from vidscribe.errors import StateTransitionError
from vidscribe.models.video import VideoStatus

S = VideoStatus

TRANSITIONS: dict[VideoStatus, frozenset[VideoStatus]] = {
    S.PENDING: frozenset({S.UPLOADING, S.TRANSCRIBING}),
    S.UPLOADING: frozenset({S.TRANSCRIBING, S.FAILED}),
    S.TRANSCRIBING: frozenset({S.PROCESSING, S.FAILED}),
    S.PROCESSING: frozenset({S.EMBEDDING, S.FAILED}),
    S.EMBEDDING: frozenset({S.COMPLETED, S.FAILED}),
    S.COMPLETED: frozenset(),
    S.FAILED: frozenset(),
}

IN_PROGRESS = frozenset({S.UPLOADING, S.TRANSCRIBING, S.PROCESSING, S.EMBEDDING})
TERMINAL = frozenset({S.COMPLETED, S.FAILED})
RECOVERY_ENTRY = S.TRANSCRIBING
INTAKE_FROM = frozenset({S.PENDING, S.UPLOADING})


def can_transition(current: VideoStatus, new: VideoStatus, *, recovery: bool = False) -> bool:
    if recovery and new is RECOVERY_ENTRY:
        return True
    return new in TRANSITIONS[current]


def check_transition(current: VideoStatus, new: VideoStatus, *, recovery: bool = False) -> None:
    if not can_transition(current, new, recovery=recovery):
        raise StateTransitionError(current.value, new.value)


def advance(
    videos: VideoStore,
    video_id: str,
    current: VideoStatus,
    new: VideoStatus,
    *,
    recovery: bool = False,
    session: Session | None = None,
    **fields,
) -> None:
    """The only way a video's status changes: legality check, then compare-and-set."""
    check_transition(current, new, recovery=recovery)
    videos.compare_and_set_status(video_id, current, new, session=session, **fields)
