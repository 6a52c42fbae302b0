"""Constants for the Ministry Sync integration."""

DOMAIN = "ministry_sync"

# Configuration
CONF_USERNAME = "username"
CONF_PASSWORD = "password"
CONF_BASE_URL = "base_url"

# Setup
SETUP_TIMEOUT_SECONDS = 60

# Service fields
ATTR_CONFIG_ENTRY_ID = "config_entry_id"
ATTR_CLASS_ID = "class_id"
ATTR_GRADE_ID = "grade_id"
ATTR_TERM_ID = "term_id"
ATTR_SUBJECT_ID = "subject_id"
ATTR_EXAM_ID = "exam_id"
ATTR_EDU_SYS_ID = "edu_sys_id"
ATTR_STAGE_ID = "stage_id"
ATTR_EXAM_GRADE_TYPE = "exam_grade_type"
ATTR_DATE = "date"
ATTR_END_DATE = "end_date"
ATTR_STUDENT_NO = "student_no"
ATTR_RECORDS = "records"
ATTR_STUDENT_ID = "student_id"
ATTR_ABSENCE_TYPE = "absence_type"
ATTR_REASON_ID = "reason_id"
ATTR_NOTES = "notes"
ATTR_MARK_VALUE = "mark_value"
ATTR_IS_ABSENT = "is_absent"

# Services
SERVICE_RELOGIN = "relogin"
SERVICE_GET_CLASSES = "get_classes"
SERVICE_GET_ABSENCE_DETAILS = "get_absence_details"
SERVICE_SUBMIT_ABSENCE = "submit_absence"
SERVICE_SUBMIT_GRADES = "submit_grades"
SERVICE_PROBE_LOGIN = "probe_login_endpoint"
