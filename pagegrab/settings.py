"""Default settings for pagegrab.

Every value here is a plain module-level constant.  Constructors accept
keyword overrides and the CLI maps its flags onto them, so nothing reads
these at import time except as a default.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# HTTP transport
# ---------------------------------------------------------------------------
USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"
REFERER = "https://www.google.com/"
ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8"
ACCEPT_LANGUAGE = "en-US,en;q=0.5"

DOWNLOAD_TIMEOUT = 30

# ---------------------------------------------------------------------------
# Retry policy
# ---------------------------------------------------------------------------
RETRY_TIMES = 3
RETRY_HTTP_CODES: frozenset[int] = frozenset({429, 500, 502, 503, 504})

# ---------------------------------------------------------------------------
# Encoding detection
# ---------------------------------------------------------------------------
AUTO_DETECT_ENCODING = True
FORCE_ENCODING: str | None = None

# Only the head of large documents is analysed for its charset
MAX_CHARSET_DETECTION_SIZE = 50_000

# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------
ENABLE_XSS = True

MULTIPAGE_ENABLED = True
MULTIPAGE_LIMIT = 10  # pages, including the first one

# ---------------------------------------------------------------------------
# Rule sources (CLI default, os.pathsep-separated list of files/directories)
# ---------------------------------------------------------------------------
RULES_ENV_VAR = "PAGEGRAB_RULES"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"
