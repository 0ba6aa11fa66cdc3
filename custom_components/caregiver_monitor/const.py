"""Constants for Caregiver Monitor."""

# Integration domain must match the folder name under custom_components
DOMAIN = "caregiver_monitor"

# Config entry keys
CONF_DEVICE_ID = "device_id"
CONF_DATABASE_URL = "database_url"
CONF_AUTH_TOKEN = "auth_token"
CONF_API_KEY = "api_key"
CONF_MODEL = "model"

# Option keys
CONF_EVENT_TYPE_FILTER = "event_type_filter"
CONF_TIME_RANGE_FILTER = "time_range_filter"
CONF_SUMMARY_ENABLED = "summary_enabled"

# Defaults
DEFAULT_MODEL = "x-ai/grok-4.1-fast"
DEFAULT_SUMMARY_ENABLED = True

# Remote store paths, formatted with the device id
REMINDERS_PATH = "reminders/{device_id}"
EVENTS_PATH = "events/{device_id}"
MESSAGES_PATH = "messages/{device_id}"

# Event types recorded by the device
EVENT_MEDICINE_TAKEN = "Medicine Taken"
EVENT_EMERGENCY = "Emergency"

# Filter selections
FILTER_ALL = "All"
TIME_DAY = "Day"
TIME_WEEK = "Week"
TIME_MONTH = "Month"
EVENT_TYPE_FILTERS = [FILTER_ALL, EVENT_MEDICINE_TAKEN, EVENT_EMERGENCY]
TIME_RANGE_FILTERS = [FILTER_ALL, TIME_DAY, TIME_WEEK, TIME_MONTH]

# AI summarizer
OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
APP_TITLE = "Smart Medicine Box"
SUMMARY_PLACEHOLDER = "Failed to fetch AI summary."
NO_SUMMARY = "No summary generated."
NO_REPLY = "No response from AI."

# Dispatcher signals; the config entry id is sent as the payload
SIGNAL_HISTORY_UPDATED = f"{DOMAIN}_history_updated"
SIGNAL_SUMMARY_UPDATED = f"{DOMAIN}_summary_updated"

# Services
SERVICE_REFRESH_SUMMARY = "refresh_summary"
SERVICE_ASK = "ask"
SERVICE_CLEAR_CHAT = "clear_chat"
SERVICE_SET_FILTERS = "set_filters"
SERVICE_SEND_MESSAGE = "send_message"
SERVICES = (
    SERVICE_REFRESH_SUMMARY,
    SERVICE_ASK,
    SERVICE_CLEAR_CHAT,
    SERVICE_SET_FILTERS,
    SERVICE_SEND_MESSAGE,
)

ATTR_ENTRY_ID = "entry_id"
ATTR_MESSAGE = "message"
ATTR_TEXT = "text"

# HA state strings are capped at 255 characters
MAX_STATE_LENGTH = 255
