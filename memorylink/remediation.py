"""Remediation steps printed alongside blocking secret findings."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class RemediationGuide:
    provider: str
    steps: List[str] = field(default_factory=list)
    reference_url: Optional[str] = None


_GITHUB = RemediationGuide(
    provider="GitHub",
    steps=[
        "Open GitHub Settings > Developer settings > Personal access tokens",
        "Revoke the exposed token",
        "Generate a replacement token if it is still needed",
        "Update code and config to use the new token",
        "Purge the old token from git history (git filter-repo or BFG)",
    ],
    reference_url="https://docs.github.com/en/authentication/keeping-your-account-and-data-secure/managing-your-personal-access-tokens",
)

_AWS = RemediationGuide(
    provider="AWS",
    steps=[
        "Open the IAM console > Users > Security credentials",
        "Deactivate and delete the exposed access key",
        "Create a new access key if it is still needed",
        "Update code and config to use the new key",
        "Review CloudTrail for activity made with the old key",
    ],
    reference_url="https://docs.aws.amazon.com/IAM/latest/UserGuide/id_credentials_access-keys.html",
)

_AI_PROVIDER = RemediationGuide(
    provider="OpenAI/Anthropic",
    steps=[
        "Open the provider console (OpenAI API keys or Anthropic Console)",
        "Revoke the exposed key",
        "Generate a new key",
        "Update code and config to use the new key",
        "Check usage for unexpected requests",
    ],
)

_SLACK = RemediationGuide(
    provider="Slack",
    steps=[
        "Open api.slack.com/apps and select the app",
        "Regenerate the token or webhook URL",
        "Update integrations that used the old value",
    ],
)

_STRIPE = RemediationGuide(
    provider="Stripe",
    steps=[
        "Open the Stripe dashboard > Developers > API keys",
        "Roll the exposed key",
        "Update code and config to use the new key",
        "Review recent API requests and payouts",
    ],
)

_GOOGLE = RemediationGuide(
    provider="Google Cloud",
    steps=[
        "Open Google Cloud console > APIs & Services > Credentials",
        "Delete or regenerate the exposed key",
        "Add API and referrer restrictions to the replacement",
    ],
)

_PRIVATE_KEY = RemediationGuide(
    provider="Private key",
    steps=[
        "Treat the key pair as compromised",
        "Generate a new key pair",
        "Replace the public key everywhere it is trusted (servers, deploy keys, certificates)",
        "Remove the private key from the repository and its history",
    ],
)

_DATABASE = RemediationGuide(
    provider="Database",
    steps=[
        "Change the database password",
        "Update connection strings to read credentials from the environment",
        "Review database access logs for unknown connections",
    ],
)

_GENERIC = RemediationGuide(
    provider="Generic",
    steps=[
        "Identify which service the secret belongs to",
        "Revoke or rotate the secret",
        "Update code and config with the new value",
        "Keep secrets in environment variables or a secret manager",
        "Remove the old secret from git history",
    ],
)

_BY_PREFIX = (
    ("github", _GITHUB),
    ("aws", _AWS),
    ("anthropic", _AI_PROVIDER),
    ("openai", _AI_PROVIDER),
    ("slack", _SLACK),
    ("stripe", _STRIPE),
    ("google", _GOOGLE),
    ("private-key", _PRIVATE_KEY),
    ("db-url", _DATABASE),
)


def remediation_for(pattern_id: Optional[str]) -> RemediationGuide:
    """Guide for a pattern id; unknown ids get the generic guide."""
    key = (pattern_id or "").lower()
    for prefix, guide in _BY_PREFIX:
        if key.startswith(prefix):
            return guide
    return _GENERIC


def format_remediation(pattern_id: Optional[str]) -> str:
    guide = remediation_for(pattern_id)
    lines = [f"How to fix ({guide.provider}):"]
    lines.extend(f"  {i}. {step}" for i, step in enumerate(guide.steps, start=1))
    if guide.reference_url:
        lines.append(f"  More: {guide.reference_url}")
    return "\n".join(lines)
