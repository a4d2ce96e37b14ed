# Notification endpoints (relative to Settings.api_base_url)
NOTIFICATIONS_PATH = "/notifications"
NOTIFICATION_READ_PATH = "/notifications/{notification_id}/read"
NOTIFICATIONS_READ_ALL_PATH = "/notifications/read-all"
UNREAD_COUNT_PATH = "/notifications/unread-count"
NOTIFICATION_SETTINGS_PATH = "/notifications/settings"
REGISTER_TOKEN_PATH = "/notifications/register-token"

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

# Suppress repeated session-expired callbacks within this window (seconds)
SESSION_EXPIRED_DEBOUNCE = 1.0
