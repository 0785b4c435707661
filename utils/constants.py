"""
Application-wide constants.
Centralizes magic values shared by the booking core.
"""

# Provider choice meaning "any barber will do"
NO_PREFERENCE = "any"

# Validation limits
MAX_NAME_LENGTH = 120
MAX_PHONE_LENGTH = 32
MAX_NOTES_LENGTH = 1000

# Statuses that keep a barber busy for the appointment window
BLOCKING_STATUSES = ("PENDING", "APPROVED")

# Postgres unique_violation
UNIQUE_VIOLATION_CODE = "23505"
