"""Expand command templates into finished prompt text.

Expansion runs a fixed pipeline and stops at the first failure:

1. validate the body against the active security policy
2. substitute ``$1``..``$10`` and ``$ARGUMENTS``
3. run each ``!`command``` snippet and inline its output
4. inline each ``@path`` file reference
5. prepend the extended thinking marker when the text asks for deliberation

Snippets and files are resolved one at a time in document order.
"""
import asyncio
import logging
import re
import shlex
from enum import Enum
from pathlib import Path

from slashcmd.config.settings import CommandsConfig
from slashcmd.exceptions import (
    CommandTimeoutError,
    ExecutionError,
    FileReferenceError,
    SecurityError,
    SlashCmdError,
)
from slashcmd.security.policy import SecurityPolicy
from slashcmd.security.validator import (
    UNSAFE_REFERENCE_FINDING,
    enforce,
    is_shell_permitted,
    validate,
)
from slashcmd.utils.formatting import fence
from slashcmd.utils.markers import (
    FILE_REFERENCE_PATTERN,
    SHELL_SNIPPET_PATTERN,
    extract_file_references,
    extract_shell_snippets,
    is_unsafe_reference,
)

from .models import CommandDefinition, PreviewReport

logger = logging.getLogger(__name__)

CATCH_ALL_PLACEHOLDER = "$ARGUMENTS"

# One pass, so "$1" never clobbers "$10" and argument text is never re-expanded
PLACEHOLDER_PATTERN = re.compile(r"\$(?:ARGUMENTS|(10|[1-9])(?![0-9]))")

ARGUMENTS_BLOCK = (
    "\n\n---\n\n**Command arguments:**\n{args}\n\n"
    "Please execute the process considering the above arguments."
)

THINKING_KEYWORDS = (
    "think through",
    "reason about",
    "analyze carefully",
    "consider deeply",
    "extended thinking",
    "step by step",
    "break down",
    "reasoning process",
)

THINKING_MARKER = "🤔 **Extended Thinking Mode Activated**\n\n"

# Preview time estimates, in seconds
BASE_ESTIMATE = 0.1
SHELL_ESTIMATE = 0.5
FILE_ESTIMATE = 0.05


class ExpansionStage(Enum):
    """Pipeline step; recorded on errors as ``error.stage``."""

    VALIDATE = "validate"
    SUBSTITUTE = "substitute"
    SHELL = "shell"
    FILES = "files"
    REASONING = "reasoning"


def substitute_arguments(body: str, args: list[str]) -> str:
    """Fill placeholders from call-time arguments.

    ``$N`` takes the N-th argument (empty when missing) and ``$ARGUMENTS``
    takes all arguments shell-quoted and joined by spaces. When the body has
    no ``$ARGUMENTS`` but arguments were given, the body is left untouched
    and the quoted arguments are appended in a delimited block.
    """
    joined = shlex.join(args)
    if args and CATCH_ALL_PLACEHOLDER not in body:
        return body + ARGUMENTS_BLOCK.format(args=fence(joined))

    def replace(match: re.Match) -> str:
        if match.group(1) is None:
            return joined
        index = int(match.group(1))
        return args[index - 1] if index <= len(args) else ""

    return PLACEHOLDER_PATTERN.sub(replace, body)


def detect_thinking_keywords(text: str) -> bool:
    """Check for phrases that ask for deliberate reasoning."""
    lowered = text.lower()
    return any(keyword in lowered for keyword in THINKING_KEYWORDS)


def estimate_seconds(snippet_count: int, reference_count: int) -> float:
    return BASE_ESTIMATE + SHELL_ESTIMATE * snippet_count + FILE_ESTIMATE * reference_count


class ExpansionEngine:
    """Turns a CommandDefinition plus arguments into prompt text."""

    def __init__(
        self,
        config: CommandsConfig | None = None,
        cwd: Path | None = None,
        shell: str = "bash",
    ):
        config = config or CommandsConfig()
        self.timeout = config.shell_timeout
        self.max_file_size = config.max_file_size
        self.cwd = Path(cwd) if cwd else None
        self.shell = shell

    @property
    def working_dir(self) -> Path:
        return self.cwd or Path.cwd()

    async def expand(
        self,
        definition: CommandDefinition,
        args: list[str],
        policy: SecurityPolicy,
    ) -> str:
        """Run the full pipeline.

        Raises:
            SecurityError: Body, snippet or file reference is unsafe.
            ExecutionError: A snippet failed or is not permitted.
            CommandTimeoutError: A snippet exceeded the timeout.
            FileReferenceError: A referenced file is missing, too large or unreadable.
        """
        stage = ExpansionStage.VALIDATE
        try:
            enforce(definition.body, policy, definition.name)

            stage = ExpansionStage.SUBSTITUTE
            text = substitute_arguments(definition.body, args)

            stage = ExpansionStage.SHELL
            text = await self._resolve_shell_snippets(definition, text, policy)

            stage = ExpansionStage.FILES
            text = await self._resolve_file_references(definition, text)

            stage = ExpansionStage.REASONING
            if detect_thinking_keywords(text):
                logger.debug(f"Extended thinking requested by '{definition.name}'")
                text = THINKING_MARKER + text
        except SlashCmdError as e:
            e.stage = stage
            logger.debug(f"Expansion of '{definition.name}' failed at {stage.value}: {e}")
            raise

        logger.info(f"Expanded custom command '{definition.name}' with {len(args)} argument(s)")
        return text

    async def _resolve_shell_snippets(
        self, definition: CommandDefinition, text: str, policy: SecurityPolicy
    ) -> str:
        allowed_tools = definition.allowed_tools
        pieces = []
        last = 0

        for match in SHELL_SNIPPET_PATTERN.finditer(text):
            snippet = match.group(1)
            if allowed_tools and not is_shell_permitted(snippet, allowed_tools):
                logger.warning(f"Shell snippet denied for '{definition.name}': {snippet}")
                raise ExecutionError(snippet, "not permitted by allowed-tools")

            # Arguments may have changed the snippet since the body was validated
            enforce(snippet, policy, definition.name)

            output = await self.run_shell(snippet)
            pieces.append(text[last:match.start()])
            pieces.append(output)
            last = match.end()

        pieces.append(text[last:])
        return "".join(pieces)

    async def run_shell(self, command: str) -> str:
        """Run one snippet and return its trimmed stdout.

        The child is killed if the timeout expires or the caller is cancelled.
        """
        logger.debug(f"Running shell snippet: {command}")
        try:
            process = await asyncio.create_subprocess_exec(
                self.shell,
                "-c",
                command,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self.working_dir,
            )
        except OSError as e:
            raise ExecutionError(command, f"could not start {self.shell}: {e}") from e

        try:
            stdout_bytes, stderr_bytes = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            await self._kill(process)
            raise CommandTimeoutError(command, self.timeout) from None
        except asyncio.CancelledError:
            await self._kill(process)
            raise

        stdout = stdout_bytes.decode("utf-8", errors="replace")
        stderr = stderr_bytes.decode("utf-8", errors="replace")

        if process.returncode != 0:
            raise ExecutionError(
                command, f"exited with status {process.returncode}", stderr
            )
        return stdout.strip()

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.kill()
            await process.wait()
        except ProcessLookupError:
            pass

    async def _resolve_file_references(self, definition: CommandDefinition, text: str) -> str:
        pieces = []
        last = 0

        for match in FILE_REFERENCE_PATTERN.finditer(text):
            reference = match.group(1)
            if is_unsafe_reference(reference):
                raise SecurityError(
                    definition.name, [UNSAFE_REFERENCE_FINDING.format(reference)]
                )
            content = await self.read_file_reference(reference)
            pieces.append(text[last:match.start()])
            pieces.append(fence(content))
            last = match.end()

        pieces.append(text[last:])
        return "".join(pieces)

    async def read_file_reference(self, reference: str) -> str:
        """Read a referenced file relative to the working directory.

        Raises:
            FileReferenceError: If the file is missing, escapes the working
                directory through a symlink, is too large, or is not text.
        """
        path, size = await asyncio.to_thread(self._locate_reference, reference)

        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise FileReferenceError(reference, str(e)) from e

        logger.debug(f"Inlined file reference @{reference} ({size} bytes)")
        return content

    def _locate_reference(self, reference: str) -> tuple[Path, int]:
        """Resolve a reference inside the working directory and check its size.

        Symlinks are followed before the containment check.
        """
        cwd = self.working_dir.resolve()
        path = self.working_dir / reference
        if not path.exists():
            raise FileReferenceError(reference, "file not found")

        resolved = path.resolve()
        if not resolved.is_relative_to(cwd):
            raise FileReferenceError(reference, "resolves outside the working directory")
        if not resolved.is_file():
            raise FileReferenceError(reference, "not a regular file")

        size = resolved.stat().st_size
        if size > self.max_file_size:
            raise FileReferenceError(
                reference,
                f"file too large: {size} bytes (max: {self.max_file_size} bytes)",
            )
        return resolved, size

    def preview(
        self,
        definition: CommandDefinition,
        args: list[str],
        policy: SecurityPolicy | None = None,
    ) -> PreviewReport:
        """Describe what expand() would do without running or reading anything."""
        processed = substitute_arguments(definition.body, args)
        snippets = extract_shell_snippets(processed)
        references = extract_file_references(processed)

        findings = list(validate(definition.body, policy or SecurityPolicy()).findings)
        for finding in validate(processed, policy or SecurityPolicy()).findings:
            if finding not in findings:
                findings.append(finding)

        denied = []
        if definition.allowed_tools:
            denied = [
                snippet
                for snippet in snippets
                if not is_shell_permitted(snippet, definition.allowed_tools)
            ]

        return PreviewReport(
            command_name=definition.name,
            args=list(args),
            processed_content=processed,
            shell_snippets=snippets,
            file_references=references,
            security_findings=findings,
            denied_snippets=denied,
            estimated_seconds=estimate_seconds(len(snippets), len(references)),
            description=definition.description,
            argument_hint=definition.argument_hint,
        )
