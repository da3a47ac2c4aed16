"""Application-wide constants."""

# API Configuration
API_VERSION = "v1"
API_PREFIX = f"/api/{API_VERSION}"

# Pagination defaults
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

# Coin amounts accepted for transfers and admin credits
MIN_COIN_AMOUNT = 1
MAX_COIN_AMOUNT = 1_000_000

# Daily reward cooldown
DAILY_CLAIM_COOLDOWN_HOURS = 24

# Hosting account capacity bounds
MIN_ACCOUNT_CAPACITY = 1
MAX_ACCOUNT_CAPACITY = 100

# Referral codes are 8 upper-case hex characters; accepted input is looser
REFERRAL_CODE_LENGTH = 8
REFERRAL_CODE_PATTERN = r"^[A-Za-z0-9]{6,20}$"

# owner/name on GitHub
GITHUB_REPO_PATTERN = r"^[A-Za-z0-9_-]+/[A-Za-z0-9_-]+$"
BOT_MANIFEST_FILE = "kerm.json"
REQUIRED_MANIFEST_FIELDS = ("bot-name", "description", "env")

# Heroku app names: lowercase, starts with a letter, 30 characters max
MAX_APP_NAME_LENGTH = 30

# Deployment log journal is capped to keep rows small
MAX_DEPLOYMENT_LOG_CHARS = 20_000
