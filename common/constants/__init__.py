"""Constants for ReflectScan Engine."""

# Parameter sources
class ParamSource:
    URL = "URL"
    COOKIE = "Cookie"
    BODY = "Body"


# Scan modes
class ScanMode:
    STRICT = "strict"
    STRICT_SIGNALS = "strict+signals"
    EXPLORATORY = "exploratory"


# Severity categories
class Severity:
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    INFO = "info"


# Confidence categories
class Confidence:
    VERY_HIGH = "very high"
    HIGH = "high"
    MODERATE = "moderate"
    LOW = "low"


# Total score categories
class Verdict:
    STRONG = "strong"
    LIKELY = "likely"
    WEAK = "weak"


# Default settings
DEFAULT_SCAN_MODE = ScanMode.STRICT_SIGNALS
DEFAULT_PROBE_BATCH_SIZE = 8
DEFAULT_AMBIGUOUS_MAX_LENGTH = 2
DEFAULT_RANDOM_LENGTH = 8
DEFAULT_MARKER_LENGTH = 5
HEADER_CANARY_PREFIX = "_HDR_CANARY_"

# Rate limiter defaults
DEFAULT_RATE_LIMIT_CAPACITY = 20.0  # Max tokens
DEFAULT_RATE_LIMIT_RATE = 10.0  # Tokens per second

# Timeout defaults (seconds)
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 30.0
DEFAULT_TOTAL_TIMEOUT = 60.0
DEFAULT_SCAN_TIMEOUT = 300.0

# Stability fingerprint
KEY_WORDS = ['","', "<script", "<div", '""', "[]"]

# Content types a browser renders as markup (sniff-sensitive)
NO_SNIFF_CONTENT_TYPES = frozenset(
    {
        "text/html",
        "application/xhtml+xml",
        "application/xml",
        "text/xml",
        "image/svg+xml",
        "text/xsl",
        "application/vnd.wap.xhtml+xml",
        "multipart/x-mixed-replace",
        "application/rdf+xml",
        "application/mathml+xml",
        "text/vtt",
        "text/cache-manifest",
        "model/vnd.usdz+zip",
        "video/mp2t",
    }
)

COMMON_ANALYTICS_HOSTS = frozenset(
    {
        "google-analytics.com",
        "www.google-analytics.com",
        "analytics.google.com",
        "stats.g.doubleclick.net",
        "doubleclick.net",
        "googletagmanager.com",
        "www.googletagmanager.com",
        "optimizely.com",
        "logx.optimizely.com",
        "intercom.io",
        "api-iam.intercom.io",
        "hotjar.com",
        "in.hotjar.com",
        "segment.com",
        "api.segment.io",
        "facebook.com",
        "connect.facebook.net",
        "sentry.io",
        "o0.ingest.sentry.io",
        "bat.bing.com",
        "mixpanel.com",
        "api.mixpanel.com",
    }
)

COMMON_ANALYTICS_ENDPOINTS = frozenset({"/socket.io/"})

SCANNABLE_METHODS = frozenset({"GET", "POST"})

EXECUTABLE_SCRIPT_TYPES = frozenset(
    {
        "",
        "text/javascript",
        "application/javascript",
        "module",
        "application/ecmascript",
        "text/ecmascript",
    }
)

URL_ATTRIBUTES = frozenset(
    {
        "href",
        "src",
        "action",
        "formaction",
        "cite",
        "data",
        "poster",
        "background",
        "lowsrc",
        "xlink:href",
    }
)

# Header characters worth probing, per header name
HEADER_CHARSETS: dict[str, list[str]] = {
    "location": [":", "/", "?", "#", "&", "=", "%", " ", "<", '"', "'", "\\"],
    "set-cookie": [";", ",", "=", " ", '"', "'"],
    "content-security-policy": [";", ",", "'", " ", "*", ":", "/", ".", "(", ")"],
    "access-control-allow-origin": ["*", " ", "/", ":", ".", "-", "_"],
    "access-control-allow-credentials": ["t", "r", "u", "e"],
    "content-type": [";", " ", "=", "/", "+", "-"],
    "refresh": [";", "=", " ", ":", "/", "?", "#"],
    "content-disposition": [";", " ", "=", '"', "'", "*"],
}
UNIVERSAL_HEADER_CHARS = ["\n", "\r"]

# Severity weights
HEADER_WEIGHTS: dict[str, int] = {
    "location": 75,
    "refresh": 75,
    "content-security-policy": 70,
    "set-cookie": 65,
    "access-control-allow-origin": 55,
    "access-control-allow-credentials": 55,
    "link": 45,
}
DEFAULT_HEADER_WEIGHT = 35
HEADER_SEVERITY_FLOOR = 40

CONTEXT_WEIGHTS: dict[str, int] = {
    "js": 80,
    "jsInQuote": 72,
    "eventHandler": 78,
    "eventHandlerEscaped": 28,
    "attributeInQuote": 66,
    "attribute": 40,
    "attributeEscaped": 22,
    "css": 45,
    "cssInQuote": 38,
    "jsonStructure": 42,
    "jsonString": 32,
    "jsonEscaped": 20,
    "html": 35,
    "htmlComment": 20,
    "responseHeader": 50,
}
DEFAULT_CONTEXT_WEIGHT = 30

CHAR_WEIGHTS: dict[str, int] = {
    "<": 15,
    ">": 5,
    "`": 8,
    "=": 5,
    " ": 4,
    "/": 3,
    ":": 4,
}
# Either quote character scores once
QUOTE_CHARS = frozenset({'"', "'"})
QUOTE_WEIGHT = 10
CHAR_SCORE_CAP = 40
