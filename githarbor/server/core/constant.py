PROJECT_NAME = "GitHarbor"
API_VERSION = "1.0.0"
SCHEMA_VERSION = "v1"

# Authentication
PRIVATE_TOKEN_HEADER = "PRIVATE-TOKEN"
PRIVATE_TOKEN_PARAM = "private_token"

# Cookies
DIFF_VIEW_COOKIE = "diff_view"
PERMANENT_COOKIE_MAX_AGE = 20 * 365 * 24 * 60 * 60

# Session keys
FLASH_SESSION_KEY = "flash"
