"""Application-wide constants."""

DEFAULT_LIKES_TO_PASS = 0

CRON_QUALIFICATION_PATH = "/api/cron/process-round-qualifications"
CRON_ENTRY_VISIBILITY_PATH = "/api/cron/update-competition-entries"
ADMIN_PROCESS_QUALIFICATION_PATH = "/api/competitions/{competition_id}/process-qualification"

BEARER_PREFIX = "Bearer "

SCHEDULER_ERROR_BACKOFF_SECONDS = 30
