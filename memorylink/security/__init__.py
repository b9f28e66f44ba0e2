"""Secret scanning, masking and quarantine."""

from memorylink.security.detector import ScanResult, SecretScanner
from memorylink.security.masking import mask_secret, mask_secrets
from memorylink.security.severity import SeverityTier

__all__ = ["ScanResult", "SecretScanner", "SeverityTier", "mask_secret", "mask_secrets"]
