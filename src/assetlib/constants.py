"""Project-wide named constants.

Constants defined here replace inline magic numbers across the codebase.
Defaults for :class:`~assetlib.models.IngestConfig` are drawn from here.
"""

# Largest payload accepted by the caller-facing entry point. Enforced before
# any network I/O; the control plane rejects larger pre-signed POSTs anyway.
MAX_PAYLOAD_BYTES: int = 10 * 1024 * 1024

# Per-attempt timeout for control-plane requests (seconds).
REQUEST_TIMEOUT_SECONDS: float = 30.0
MAX_REQUEST_ATTEMPTS: int = 3
# Wait between attempt i and i+1 is RETRY_BASE_DELAY_SECONDS * 2**i (no cap).
RETRY_BASE_DELAY_SECONDS: float = 0.1

# Independent of the control-plane timeout and the pipeline deadline.
BLOB_UPLOAD_TIMEOUT_SECONDS: float = 20.0

# Measured from pipeline start; bounds every stage including fallback.
PIPELINE_DEADLINE_SECONDS: float = 90.0

# Delay before poll attempt n is POLL_INITIAL_DELAY_SECONDS * 1.5**(n-1).
# Uncapped: the full 15-attempt budget sleeps ~175s, longer than the
# pipeline deadline.
POLL_ATTEMPTS: int = 15
POLL_INITIAL_DELAY_SECONDS: float = 0.2
POLL_BACKOFF_FACTOR: float = 1.5

# Call-site attempts at publish; each one is itself retried by the executor.
PUBLISH_ATTEMPTS: int = 2

# Blob-store backends may answer HTTP 200 with an XML error document.
BLOB_ERROR_MARKERS: tuple[str, ...] = ("<Error>", "<Code>")

# upload.status values reported by the control plane for a dead upload.
TERMINAL_FAILURE_STATES: frozenset[str] = frozenset(
    {"FAILED", "ASSET_ERROR_UPLOAD", "ASSET_UPLOAD_FAILED"}
)
