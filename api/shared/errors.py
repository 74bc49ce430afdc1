"""
Error taxonomy shared by the real-time layer and the training jobs.

Per-connection failures (TransportError, MalformedMessage) are contained at
the connection boundary; NotFound is surfaced to the caller of the query
that referenced the unknown id.
"""


class TransportError(Exception):
    """A send, probe or close failed on one connection."""


class MalformedMessage(ValueError):
    """A client frame could not be parsed into a message."""


class NotFound(LookupError):
    """An operation referenced an unknown job or model id."""

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind} '{identifier}' not found")
        self.kind = kind
        self.identifier = identifier


class SimulationCancelled(Exception):
    """A training job was stopped before it completed."""

    def __init__(self, job_id: str):
        super().__init__(f"Training job '{job_id}' was stopped")
        self.job_id = job_id
