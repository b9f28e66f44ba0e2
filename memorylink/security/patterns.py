"""Secret pattern catalogue.

Patterns are checked in order and the first hit wins, so provider
specific patterns come before generic ones. ``error`` patterns block a
write (RED); ``warn`` patterns let it through with a warning (YELLOW).

The built-in list can be extended with ``custom_patterns`` and trimmed
with ``disabled_patterns`` in ``.memorylink/config.json``.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Pattern

from memorylink.protocols import ConfigError

SEVERITY_ERROR = "error"
SEVERITY_WARN = "warn"
VALID_SEVERITIES = frozenset({SEVERITY_ERROR, SEVERITY_WARN})


@dataclass(frozen=True)
class SecretPattern:
    """A named regular expression for one kind of secret."""

    id: str
    name: str
    regex: Pattern[str]
    severity: str = SEVERITY_ERROR
    description: str = ""


def _p(id: str, name: str, pattern: str, description: str, severity: str = SEVERITY_ERROR, flags: int = 0):
    return SecretPattern(id, name, re.compile(pattern, flags), severity, description)


SECRET_PATTERNS: List[SecretPattern] = [
    _p(
        "anthropic-api-key",
        "Anthropic API Key",
        r"sk-ant-[a-zA-Z0-9_-]{32,}",
        "Anthropic API key (sk-ant-...)",
    ),
    _p(
        "openai-api-key",
        "OpenAI/Anthropic API Key",
        r"sk-(?:proj-)?[a-zA-Z0-9_-]{32,}",
        "OpenAI or Anthropic style secret key (sk-...)",
    ),
    _p("aws-access-key", "AWS Access Key", r"(?:AKIA|ASIA)[0-9A-Z]{16}", "AWS access key id"),
    _p(
        "aws-secret-key",
        "AWS Secret Key",
        r"aws_secret_access_key\s*[:=]\s*['\"]?[A-Za-z0-9/+=]{40}['\"]?",
        "AWS secret access key assignment",
        flags=re.IGNORECASE,
    ),
    _p(
        "github-token",
        "GitHub Token",
        r"(?:ghp|gho|ghu|ghs|ghr)_[a-zA-Z0-9]{36}|github_pat_[a-zA-Z0-9_]{22,}",
        "GitHub personal access or app token",
    ),
    _p("slack-token", "Slack Token", r"xox[baprs]-[0-9a-zA-Z-]{10,}", "Slack API token"),
    _p(
        "slack-webhook",
        "Slack Webhook URL",
        r"https://hooks\.slack\.com/services/[A-Z0-9]+/[A-Z0-9]+/[a-zA-Z0-9]+",
        "Slack incoming webhook URL",
        flags=re.IGNORECASE,
    ),
    _p("stripe-key", "Stripe API Key", r"(?:sk|rk)_(?:live|test)_[a-zA-Z0-9]{24,}", "Stripe secret key"),
    _p("google-api-key", "Google API Key", r"AIza[0-9A-Za-z_-]{35}", "Google API key"),
    _p(
        "sendgrid-key",
        "SendGrid API Key",
        r"SG\.[a-zA-Z0-9_-]{22}\.[a-zA-Z0-9_-]{43}",
        "SendGrid API key",
    ),
    _p(
        "private-key",
        "Private Key",
        r"-----BEGIN\s+(?:RSA\s+|EC\s+|DSA\s+|OPENSSH\s+|ENCRYPTED\s+)?PRIVATE\s+KEY-----",
        "PEM private key block",
    ),
    _p(
        "jwt",
        "JWT Token",
        r"eyJ[a-zA-Z0-9_-]+\.eyJ[a-zA-Z0-9_-]+\.[a-zA-Z0-9_-]+",
        "JSON Web Token",
    ),
    _p(
        "db-url",
        "Database URL",
        r"(?:postgres(?:ql)?|mysql|mongodb(?:\+srv)?|redis|amqp)://[^:\s/]+:[^@\s]+@",
        "Connection string with inline credentials",
        flags=re.IGNORECASE,
    ),
    _p(
        "password",
        "Password",
        r"pass(?:word|wd)\s*[:=]\s*['\"]?[^\s'\"]{8,}['\"]?",
        "Password assignment",
        flags=re.IGNORECASE,
    ),
    _p(
        "api-key",
        "Generic API Key",
        r"api[_-]?key\s*[:=]\s*['\"]?[a-zA-Z0-9_\-]{20,}['\"]?",
        "Generic API key assignment",
        flags=re.IGNORECASE,
    ),
    _p(
        "token",
        "Token",
        r"(?:access[_-]?|auth[_-]?)?token\s*[:=]\s*['\"]?[a-zA-Z0-9_\-]{20,}['\"]?",
        "Authentication token assignment",
        flags=re.IGNORECASE,
    ),
    _p(
        "client-secret",
        "Client Secret",
        r"client[_-]?secret\s*[:=]\s*['\"]?[A-Za-z0-9_\-]{16,}['\"]?",
        "OAuth client secret assignment",
        flags=re.IGNORECASE,
    ),
    # Warnings: patterns that point at a leak risk rather than a live secret
    _p(
        "browser-storage-secret",
        "Browser Storage with Secret",
        r"(?:local|session)Storage\.(?:setItem|getItem)\s*\(\s*['\"](?:api[_-]?key|secret|token|password|credential)['\"]",
        "Secret kept in localStorage/sessionStorage",
        severity=SEVERITY_WARN,
        flags=re.IGNORECASE,
    ),
    _p(
        "url-secret",
        "Secret in URL",
        r"(?:https?|ftp)://\S+[?&](?:api[_-]?key|secret|token|password)=[^\s&\"']+",
        "Secret passed as a URL query parameter",
        severity=SEVERITY_WARN,
        flags=re.IGNORECASE,
    ),
    _p(
        "kubernetes-secret",
        "Kubernetes Secret Manifest",
        r"kind:\s*Secret\b",
        "Kubernetes Secret manifest",
        severity=SEVERITY_WARN,
    ),
]


def compile_custom_pattern(data: Dict[str, Any]) -> SecretPattern:
    """Build a SecretPattern from a ``custom_patterns`` config entry.

    Raises:
        ConfigError: If a field is missing or the regex does not compile.
    """
    if not isinstance(data, dict):
        raise ConfigError(f"custom pattern must be an object, got {type(data).__name__}")
    try:
        pattern_id = data["id"]
        regex = data["pattern"]
    except KeyError as e:
        raise ConfigError(f"custom pattern is missing required field {e.args[0]!r}") from e
    severity = data.get("severity", SEVERITY_ERROR)
    if severity not in VALID_SEVERITIES:
        raise ConfigError(f"custom pattern {pattern_id!r}: invalid severity {severity!r}")
    flags = re.IGNORECASE if data.get("ignore_case", False) else 0
    try:
        compiled = re.compile(regex, flags)
    except (re.error, TypeError) as e:
        raise ConfigError(f"custom pattern {pattern_id!r}: invalid regex: {e}") from e
    return SecretPattern(
        id=str(pattern_id),
        name=str(data.get("name", pattern_id)),
        regex=compiled,
        severity=severity,
        description=str(data.get("description", "")),
    )


def build_catalogue(
    custom_patterns: Optional[Iterable[Dict[str, Any]]] = None,
    disabled_patterns: Optional[Iterable[str]] = None,
) -> List[SecretPattern]:
    """Built-in patterns plus custom ones, minus disabled ids.

    Custom patterns run after the built-ins, in config order.
    """
    disabled = set(disabled_patterns or ())
    catalogue = [p for p in SECRET_PATTERNS if p.id not in disabled]
    for data in custom_patterns or ():
        pattern = compile_custom_pattern(data)
        if pattern.id not in disabled:
            catalogue.append(pattern)
    return catalogue


def get_pattern(pattern_id: str) -> Optional[SecretPattern]:
    for pattern in SECRET_PATTERNS:
        if pattern.id == pattern_id:
            return pattern
    return None
