"""All error definitions shared across the service."""

from __future__ import annotations

from digitflow.errors.dfp_errors import DFPError

# -- Validation ------------------------------------------------------------

ErrMissingCredentials = DFPError(
    "Access key and device fingerprint required",
    status_code=400,
    code="missing-credentials",
)
ErrMissingAccessKeyID = DFPError(
    "Access key ID required", status_code=400, code="missing-access-key-id"
)
ErrMissingDeviceID = DFPError("Device ID required", status_code=400, code="missing-device-id")
ErrUnknownMarket = DFPError("Unknown market", status_code=400, code="unknown-market")
ErrInvalidWindowSize = DFPError(
    "Tick window size out of range", status_code=400, code="invalid-window-size"
)

# -- Authentication --------------------------------------------------------

ErrUnauthorized = DFPError("unauthorized", status_code=401, code="unauthorized")
ErrAdminRequired = DFPError(
    "admin authentication required", status_code=403, code="admin-required"
)
ErrInvalidSession = DFPError("invalid session token", status_code=401, code="invalid-session")

# -- Access key verification -----------------------------------------------

ErrInvalidAccessKey = DFPError(
    "Invalid or inactive access key", status_code=401, code="invalid-access-key"
)
ErrAccessKeyExpired = DFPError("Access key has expired", status_code=401, code="access-key-expired")
ErrDeviceConflict = DFPError(
    "This access key is already in use on another device",
    status_code=403,
    code="device-conflict",
)
ErrDeviceDeactivated = DFPError(
    "This device has been deactivated for this access key",
    status_code=403,
    code="device-deactivated",
)
ErrVerificationFailed = DFPError(
    "Failed to verify access key", status_code=500, code="verification-failed"
)


def err_device_limit(limit: int) -> DFPError:
    """Build the device-limit error citing the key's configured *limit*."""
    noun = "device" if limit == 1 else "devices"
    return DFPError(
        f"Device limit reached ({limit} {noun})",
        status_code=403,
        code="device-limit-reached",
    )


# -- Not Found -------------------------------------------------------------

ErrAccessKeyNotFound = DFPError("access key not found", status_code=404, code="access-key-not-found")
ErrDeviceNotFound = DFPError("device not found", status_code=404, code="device-not-found")

# -- Analysis --------------------------------------------------------------

ErrNoAnalysisSession = DFPError(
    "no analysis session; start one first", status_code=404, code="no-analysis-session"
)
ErrScanInProgress = DFPError(
    "a market scan is already running", status_code=409, code="scan-in-progress"
)
ErrNoScan = DFPError("no market scan has been started", status_code=404, code="no-scan")

# -- Lifecycle -------------------------------------------------------------

ErrNotReady = DFPError("service is starting up", status_code=503, code="not-ready")
