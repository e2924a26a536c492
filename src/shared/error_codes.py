# src/shared/error_codes.py
# Central mapping for the error contract.
# Keep keys stable: API clients and provider callbacks rely on these.
ERROR_CODES = {
    # ─── Validation & Requests ──────────────────────────────────────────────
    "validation_error": {
        "http": 422,
        "message": "Validation failed for one or more fields."
    },
    "invalid_request": {
        "http": 400,
        "message": "Invalid request payload."
    },

    # ─── Resources ──────────────────────────────────────────────────────────
    "not_found": {
        "http": 404,
        "message": "Resource not found."
    },
    "message_not_found": {
        "http": 404,
        "message": "Message not found."
    },
    "conflict": {
        "http": 409,
        "message": "Resource conflict."
    },
    "invalid_status_transition": {
        "http": 409,
        "message": "Status transition is not allowed."
    },
    "duplicate_message": {
        "http": 409,
        "message": "Message already exists."
    },

    # ─── Throttling ─────────────────────────────────────────────────────────
    "rate_limited": {
        "http": 429,
        "message": "Rate limit exceeded."
    },

    # ─── Dependencies ───────────────────────────────────────────────────────
    "provider_error": {
        "http": 502,
        "message": "Messaging provider rejected the request."
    },
    "queue_error": {
        "http": 503,
        "message": "Message was stored but could not be queued for dispatch."
    },
    "store_unavailable": {
        "http": 503,
        "message": "Backing store is unavailable."
    },

    # ─── Server ─────────────────────────────────────────────────────────────
    "internal_error": {
        "http": 500,
        "message": "Internal server error."
    },
}
