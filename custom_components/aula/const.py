"""Constants for the Aula integration."""

DOMAIN = "aula"

# Configuration
CONF_URL = "url"
CONF_API_KEY = "api_key"
CONF_EMAIL = "email"
CONF_PASSWORD = "password"
CONF_COURSE_IDS = "course_ids"
CONF_STUDENT_IDS = "student_ids"

# Options
CONF_ASSIGNMENT_LIMIT = "assignment_limit"
CONF_SCOPE_TO_ENROLLMENTS = "scope_to_enrollments"
CONF_SCAN_INTERVAL = "scan_interval"

# Default values
DEFAULT_ASSIGNMENT_LIMIT = 10
MAX_ASSIGNMENT_LIMIT = 100
DEFAULT_SCAN_INTERVAL_MINUTES = 60
MIN_SCAN_INTERVAL_MINUTES = 5
MAX_SCAN_INTERVAL_MINUTES = 24 * 60
SETUP_TIMEOUT_SECONDS = 120

# Pipelines
PIPELINE_ATTENDANCE = "attendance"
PIPELINE_ASSIGNMENTS = "assignments"

# Sensor types
SENSOR_ATTENDANCE = "attendance"
SENSOR_ASSIGNMENTS = "assignments"

# Attributes
ATTR_COURSE_ID = "course_id"
ATTR_STUDENT_ID = "student_id"
ATTR_RECORDS = "records"
ATTR_STATS = "stats"
ATTR_ASSIGNMENTS = "assignments"
ATTR_PENDING_COUNT = "pending_count"
ATTR_OVERDUE_COUNT = "overdue_count"
ATTR_EVALUATED_AT = "evaluated_at"
ATTR_UPDATED_AT = "updated_at"
ATTR_ERROR = "error"
ATTR_VIEW_STATUS = "view_status"

ICON_ATTENDANCE = "mdi:clipboard-account"
ICON_ASSIGNMENTS = "mdi:book-clock"

# Event types
EVENT_FETCH_FAILED = f"{DOMAIN}_fetch_failed"

# Services
SERVICE_REFRESH_ATTENDANCE = "refresh_attendance"
SERVICE_REFRESH_ASSIGNMENTS = "refresh_assignments"
SERVICE_REFRESH_ALL = "refresh_all"

# User-facing notification titles
NOTIFICATION_TITLE_ATTENDANCE = "Error al cargar la asistencia"
NOTIFICATION_TITLE_ASSIGNMENTS = "Error al cargar las tareas"
