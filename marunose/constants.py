"""Shared constants for the Marunose gateway.

All window sizes, caps and thresholds used across modules are defined here.
Other modules import their numbers from here.
"""

# ─── API Key Format ──────────────────────────────────────────────────────────

# Every issued key starts with this prefix; anything else is rejected as
# malformed before the key store is consulted.
API_KEY_PREFIX: str = "marunose-"

# Number of random characters following the prefix.
API_KEY_RANDOM_LENGTH: int = 35

# Alphabet for the random part of a key.
API_KEY_ALPHABET: str = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"

# Characters of a rejected key echoed into the security log.
KEY_PREFIX_LOG_CHARS: int = 10

# Default monthly quota for keys created without an explicit limit.
DEFAULT_MONTHLY_LIMIT: int = 1000

# ─── Rate Limiting ───────────────────────────────────────────────────────────

# /validate-key: 5 requests per 15 minutes per client IP.
VALIDATE_KEY_MAX_REQUESTS: int = 5
VALIDATE_KEY_WINDOW_S: float = 15 * 60

# /github-summarize: 10 requests per 15 minutes per client IP.
SUMMARIZE_MAX_REQUESTS: int = 10
SUMMARIZE_WINDOW_S: float = 15 * 60

# Background sweep cadence and the age after which a record is evicted.
RATE_LIMIT_SWEEP_INTERVAL_S: float = 5 * 60
RATE_LIMIT_RECORD_MAX_AGE_S: float = 15 * 60

# ─── Security Log ────────────────────────────────────────────────────────────

# Once the log grows past SECURITY_LOG_MAX_EVENTS it is cut back to the most
# recent SECURITY_LOG_TRIM_TO events (hysteresis trim, not a ring buffer).
SECURITY_LOG_MAX_EVENTS: int = 1000
SECURITY_LOG_TRIM_TO: int = 500

# Burst detection: more than BURST_EVENT_THRESHOLD events from one IP within
# BURST_WINDOW_S seconds emits a BRUTE_FORCE_DETECTED event.
BURST_EVENT_THRESHOLD: int = 10
BURST_WINDOW_S: float = 5 * 60

# ─── GitHub / Summary Chain ──────────────────────────────────────────────────

GITHUB_API_BASE: str = "https://api.github.com"
GITHUB_USER_AGENT: str = "GitHub-Summarizer/1.0"
GITHUB_ACCEPT: str = "application/vnd.github.v3+json"

# Repositories requested for a profile and how many are returned.
USER_REPOS_FETCH_LIMIT: int = 10
USER_REPOS_RETURN_LIMIT: int = 5

OPENAI_API_BASE: str = "https://api.openai.com"
OPENAI_DEFAULT_MODEL: str = "gpt-3.5-turbo"
OPENAI_DEFAULT_TEMPERATURE: float = 0.3
OPENAI_DEFAULT_MAX_TOKENS: int = 1000

# README text sent to the LLM is cut at this many characters.
README_LLM_MAX_CHARS: int = 8000

# Unstructured LLM output is cut to this many characters for the summary.
UNSTRUCTURED_SUMMARY_MAX_CHARS: int = 500

# ─── Outbound HTTP ───────────────────────────────────────────────────────────

HTTP_TIMEOUT_S: float = 30.0
HTTP_MAX_CONNECTIONS: int = 50
