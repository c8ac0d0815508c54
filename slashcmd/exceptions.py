"""Custom exceptions for slashcmd."""
from pathlib import Path


class SlashCmdError(Exception):
    """Base exception for slashcmd."""

    fatal = False

    def __init__(self, message: str = ""):
        super().__init__(message)
        # Set by the expansion engine to the stage that failed
        self.stage = None

    def user_message(self) -> str:
        """Message suitable for direct display to the user."""
        return str(self)


class FeatureDisabledError(SlashCmdError):
    """Custom commands are switched off in host settings."""

    def __init__(self):
        super().__init__("Custom commands are disabled")

    def user_message(self) -> str:
        return "⚠️ Custom commands are disabled. Enable them in your settings first."


class CommandNotFoundError(SlashCmdError):
    """No command with the requested name."""

    def __init__(self, name: str):
        super().__init__(f"Custom command '{name}' not found")
        self.name = name

    def user_message(self) -> str:
        return (
            f"❌ Command '{self.name}' not found. "
            "Run /commands list to see available commands."
        )


class ArgumentError(SlashCmdError):
    """Malformed call-time arguments."""

    def __init__(self, command: str, message: str):
        super().__init__(f"Invalid arguments for command '{command}': {message}")
        self.command = command
        self.message = message

    def user_message(self) -> str:
        return f"❌ Invalid arguments for /{self.command}: {self.message}"


class ParseError(SlashCmdError):
    """Malformed command document."""

    def __init__(self, path: Path | str, message: str):
        super().__init__(f"Failed to parse command file '{path}': {message}")
        self.path = Path(path)
        self.message = message


class FileReadError(ParseError):
    """Command file could not be read."""

    def __init__(self, path: Path | str, reason: str):
        super().__init__(path, f"read failed: {reason}")


class MetadataParseError(ParseError):
    """Leading metadata block is not valid YAML or has invalid fields."""

    def __init__(self, path: Path | str, reason: str):
        super().__init__(path, f"invalid metadata: {reason}")


class InvalidCommandError(ParseError):
    """Parsed command failed structural validation."""

    pass


class DirectoryError(SlashCmdError):
    """A command root directory could not be walked."""

    def __init__(self, path: Path | str, reason: str):
        super().__init__(f"Failed to access directory '{path}': {reason}")
        self.path = Path(path)


class SecurityError(SlashCmdError):
    """Denylisted construct or unsafe path under an enforcing policy."""

    fatal = True

    def __init__(self, command: str, findings: list[str]):
        joined = ", ".join(findings)
        super().__init__(f"Security violation in command '{command}': {joined}")
        self.command = command
        self.findings = list(findings)

    def user_message(self) -> str:
        lines = [f"🔒 Command '{self.command}' was blocked for security reasons:"]
        lines.extend(f"  - {finding}" for finding in self.findings)
        return "\n".join(lines)


class ExecutionError(SlashCmdError):
    """Inline shell snippet failed or was not permitted."""

    def __init__(self, command: str, message: str, stderr: str = ""):
        super().__init__(f"Failed to execute '{command}': {message}")
        self.command = command
        self.message = message
        self.stderr = stderr

    def user_message(self) -> str:
        text = f"❌ Shell command `{self.command}` failed: {self.message}"
        if self.stderr.strip():
            text += f"\n{self.stderr.strip()}"
        return text


class CommandTimeoutError(SlashCmdError):
    """Inline shell snippet exceeded its time budget."""

    def __init__(self, command: str, timeout: float):
        super().__init__(f"Command '{command}' timed out after {timeout}s")
        self.command = command
        self.timeout = timeout

    def user_message(self) -> str:
        return f"⏱️ Shell command `{self.command}` took longer than {self.timeout:g}s and was stopped"


class FileReferenceError(SlashCmdError):
    """Referenced file is missing, too large or unreadable."""

    def __init__(self, reference: str, reason: str):
        super().__init__(f"Failed to resolve file reference '{reference}': {reason}")
        self.reference = reference
        self.reason = reason

    def user_message(self) -> str:
        return f"📁 Could not include '@{self.reference}': {self.reason}"


class ConfigError(SlashCmdError):
    """Configuration or policy file could not be read or written."""

    fatal = True

    def __init__(self, message: str):
        super().__init__(f"Configuration error: {message}")
        self.message = message
