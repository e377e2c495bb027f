"""Stage state machine for one upload pipeline run.

Each run gets its own :class:`PipelineStateMachine`.  The orchestrator
fires one event per completed stage; the state the run ends in decides
its :class:`~assetlib.models.PipelineOutcome`:

* ``published`` / ``confirmed`` -- SUCCESS
* ``fallback`` -- PARTIAL_SUCCESS (blob upload succeeded but processing
  or publication was never confirmed)
* ``failed`` / ``timed_out`` -- FAILURE

The machine is a validation and bookkeeping tool only: no callbacks,
no I/O.
"""

from __future__ import annotations

from statemachine import State, StateMachine

from assetlib.models import PipelineOutcome


class PipelineStateMachine(StateMachine):
    """Eight-state lifecycle of a single ingestion run.

    States:
        pending   -- Nothing sent yet.
        created   -- Control-plane record exists, credential issued.
        uploaded  -- Blob store accepted the bytes.
        confirmed -- Processing finished (URL observed), not yet published.
        published -- Publish succeeded.
        fallback  -- Resolved through the fallback chain.
        failed    -- A fatal stage failure.
        timed_out -- The pipeline deadline expired.

    The four outcome states are final.
    """

    pending = State("pending", initial=True, value="pending")
    created = State("created", value="created")
    uploaded = State("uploaded", value="uploaded")
    confirmed = State("confirmed", value="confirmed")
    published = State("published", value="published", final=True)
    fallback = State("fallback", value="fallback", final=True)
    failed = State("failed", value="failed", final=True)
    timed_out = State("timed_out", value="timed_out", final=True)

    create_record = pending.to(created)
    upload_blob = created.to(uploaded)
    confirm = uploaded.to(confirmed)
    publish = confirmed.to(published) | uploaded.to(published)
    fall_back = uploaded.to(fallback) | confirmed.to(fallback)
    fail = pending.to(failed) | created.to(failed) | uploaded.to(failed)
    expire = (
        pending.to(timed_out)
        | created.to(timed_out)
        | uploaded.to(timed_out)
        | confirmed.to(timed_out)
    )

    @property
    def stage(self) -> str:
        """Value of the current state, e.g. ``"uploaded"``."""
        return self.current_state.value

    @property
    def is_terminal(self) -> bool:
        return self.current_state.final

    @property
    def outcome(self) -> PipelineOutcome:
        if self.stage in {"published", "confirmed"}:
            return PipelineOutcome.SUCCESS
        if self.stage == "fallback":
            return PipelineOutcome.PARTIAL_SUCCESS
        return PipelineOutcome.FAILURE
