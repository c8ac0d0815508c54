"""Security validation and policy."""
from .policy import PolicyStore, SecurityLevel, SecurityPolicy
from .validator import (
    DANGEROUS_PATTERNS,
    ValidationOutcome,
    check_security_risks,
    enforce,
    grants_shell,
    is_pattern_exempted,
    is_shell_permitted,
    validate,
    validate_content,
)

__all__ = [
    "DANGEROUS_PATTERNS",
    "PolicyStore",
    "SecurityLevel",
    "SecurityPolicy",
    "ValidationOutcome",
    "check_security_risks",
    "enforce",
    "grants_shell",
    "is_pattern_exempted",
    "is_shell_permitted",
    "validate",
    "validate_content",
]
