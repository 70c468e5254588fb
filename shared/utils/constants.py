"""Application constants - all magic numbers centralized."""

# Time-of-day bounds (minutes since midnight, half-open)
MINUTES_PER_DAY = 1440
MINUTES_PER_HOUR = 60

# Day numbering: 0=Sunday ... 6=Saturday
DAY_NAMES = (
    "Sunday",
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
)

# Lesson requests
DEFAULT_LESSON_DURATION = 60  # minutes
REQUEST_STATUSES = ("pending", "approved", "rejected", "scheduled")
SUBJECTS = ("piano", "math", "reading", "speech", "english")

# Notification types
NOTIFICATION_RESCHEDULE_REQUEST = "reschedule_request"
NOTIFICATION_RESCHEDULE_RESPONSE = "reschedule_response"
NOTIFICATION_DROPIN_REQUEST = "dropin_request"
NOTIFICATION_DROPIN_RESPONSE = "dropin_response"

# Email function names on the transactional email service
EMAIL_FUNCTION_REQUEST = "send-reschedule-request"
EMAIL_FUNCTION_APPROVAL = "send-reschedule-approval"
EMAIL_FUNCTION_REJECTION = "send-reschedule-rejection"

# Outbox dispatch
OUTBOX_BATCH_SIZE = 50
# A 'sending' row older than this belongs to a dispatcher that died mid-batch
OUTBOX_CLAIM_STALE_MINUTES = 5
