"""Security validation for command bodies and shell snippets.

Bodies are scanned against a fixed denylist of regular expressions, and every
``@path`` reference that is absolute or climbs out of the working directory is
reported separately. The active SecurityPolicy decides whether findings block
expansion, only warn, or are ignored.
"""
import logging
import re
from dataclasses import dataclass, field

from slashcmd.exceptions import SecurityError
from slashcmd.security.policy import SecurityLevel, SecurityPolicy
from slashcmd.utils.markers import extract_file_references, is_unsafe_reference

logger = logging.getLogger(__name__)

# Regex sources; the source text doubles as the finding label
DANGEROUS_PATTERNS: list[str] = [
    r"rm\s+-rf",  # recursive force delete
    r"sudo\s+rm",  # privileged delete
    r">\s*/dev/null",  # output discarded to the null device
    r"curl.*\|\s*(?:ba)?sh\b",  # download piped into a shell
    r"wget.*\|\s*(?:ba)?sh\b",
    r"\beval\s*\$",  # dynamic evaluation
    r"\bexec\s+",  # process replacement
    r"\bnc\s+-l",  # raw listening socket
    r"\bpython[\d.]*\b.*\s-c\b",  # inline interpreter one-liners
    r"\bperl\b.*\s-e\b",
]

_COMPILED_PATTERNS = [(pattern, re.compile(pattern)) for pattern in DANGEROUS_PATTERNS]

DANGEROUS_FINDING = "Potentially dangerous pattern detected: {}"
UNSAFE_REFERENCE_FINDING = "Potentially unsafe file reference: {}"


@dataclass
class ValidationOutcome:
    """Findings for one piece of text under one policy."""

    findings: list[str] = field(default_factory=list)
    should_warn: bool = False
    should_error: bool = False

    @property
    def clean(self) -> bool:
        """True when nothing was flagged."""
        return not self.findings


def _normalize_whitespace(text: str) -> str:
    """Collapse whitespace runs into the generic ``\\s+`` class."""
    return re.sub(r"\s+", r"\\s+", text.strip())


def _readable(pattern: str) -> str:
    return pattern.replace(r"\s+", " ").replace(r"\s*", "")


def is_pattern_exempted(pattern: str, exemptions: set[str] | list[str]) -> bool:
    """Check whether a denylist pattern is covered by any exemption.

    An exemption written as plain text (``rm -rf``) covers the pattern whose
    whitespace-normalized source contains it (``rm\\s+-rf``), and an exemption
    that spells out a pattern inside a longer command covers it too.
    """
    for exemption in exemptions:
        if not exemption.strip():
            continue
        if _normalize_whitespace(exemption) in pattern:
            return True
        if _readable(pattern) in " ".join(exemption.split()):
            return True
    return False


def check_security_risks(text: str) -> list[str]:
    """Return every finding for text, ignoring any policy."""
    return _scan(text, exemptions=set())


def _scan(text: str, exemptions: set[str]) -> list[str]:
    findings = []

    for pattern, regex in _COMPILED_PATTERNS:
        if exemptions and is_pattern_exempted(pattern, exemptions):
            continue
        if regex.search(text):
            findings.append(DANGEROUS_FINDING.format(pattern))

    for reference in extract_file_references(text):
        if not is_unsafe_reference(reference):
            continue
        if any(e.strip() and e.strip() in reference for e in exemptions):
            continue
        findings.append(UNSAFE_REFERENCE_FINDING.format(reference))

    return findings


def validate(text: str, policy: SecurityPolicy) -> ValidationOutcome:
    """Scan text and apply the policy's severity level."""
    findings = _scan(text, policy.exempted_patterns)
    return ValidationOutcome(
        findings=findings,
        should_warn=policy.level == SecurityLevel.WARN and bool(findings),
        should_error=policy.level == SecurityLevel.ENFORCE and bool(findings),
    )


def validate_content(text: str, command_name: str = "content_validation") -> None:
    """Validate under the default enforcing policy.

    Raises:
        SecurityError: If anything is flagged.
    """
    outcome = validate(text, SecurityPolicy())
    if outcome.should_error:
        raise SecurityError(command_name, outcome.findings)


def enforce(text: str, policy: SecurityPolicy, command_name: str) -> ValidationOutcome:
    """Validate under a policy, logging warnings and raising on errors."""
    outcome = validate(text, policy)
    if outcome.should_error:
        raise SecurityError(command_name, outcome.findings)
    if outcome.should_warn:
        logger.warning(f"Security risks in command '{command_name}': {outcome.findings}")
    elif outcome.findings:
        logger.debug(
            f"Security validation off, ignoring findings for '{command_name}': {outcome.findings}"
        )
    return outcome


def _shell_grants(allowed_tools: list[str] | tuple[str, ...]) -> list[str]:
    """Extract shell grants: ``Bash`` → ``*``, ``Bash(git add:*)`` → ``git add:*``."""
    grants = []
    for tool in allowed_tools:
        tool = tool.strip()
        lowered = tool.lower()
        if lowered == "bash":
            grants.append("*")
        elif lowered.startswith("bash(") and tool.endswith(")"):
            grants.append(tool[5:-1].strip())
    return grants


def grants_shell(allowed_tools: list[str] | tuple[str, ...] | None) -> bool:
    """Whether a permission list grants any shell invocation."""
    return bool(allowed_tools) and any("bash" in tool.lower() for tool in allowed_tools)


def is_shell_permitted(command: str, allowed_tools: list[str] | tuple[str, ...]) -> bool:
    """Check a shell snippet against ``allowed-tools`` grants.

    Grants may be a bare ``Bash`` (everything), ``Bash(prefix:*)`` (prefix
    match) or ``Bash(exact command)``.
    """
    grants = _shell_grants(allowed_tools)
    if not grants:
        return False
    if "*" in grants:
        return True

    command = command.strip()
    for grant in grants:
        if grant.endswith(":*"):
            if command.startswith(grant[:-2]):
                return True
        elif grant == command:
            return True
    return False
