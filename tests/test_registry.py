"""Test the command registry integration layer."""
import pytest
from pathlib import Path
from slashcmd.commands.models import CommandScope
from slashcmd.commands.registry import SAMPLE_COMMAND_FILE, CommandRegistry, parse_invocation
from slashcmd.config.settings import CommandsConfig, Config
from slashcmd.exceptions import (
    ArgumentError,
    CommandNotFoundError,
    FeatureDisabledError,
    MetadataParseError,
    SecurityError,
)
from slashcmd.security.policy import SecurityLevel


@pytest.fixture
def workspace(tmp_path):
    """Working directory and home with command roots."""
    cwd = tmp_path / "work"
    home = tmp_path / "home"
    (cwd / ".slashcmd" / "commands").mkdir(parents=True)
    (home / ".slashcmd" / "commands").mkdir(parents=True)
    return cwd, home


@pytest.fixture
def registry(workspace):
    """Enabled registry over the temp workspace."""
    cwd, home = workspace
    config = Config(commands=CommandsConfig(enabled=True))
    return CommandRegistry(config, cwd=cwd, home=home)


def project_command(workspace, name: str, content: str) -> Path:
    path = workspace[0] / ".slashcmd" / "commands" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def global_command(workspace, name: str, content: str) -> Path:
    path = workspace[1] / ".slashcmd" / "commands" / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def test_parse_invocation():
    """Invocation lines split with shell quoting rules."""
    assert parse_invocation("/deploy prod 'blue green'") == ("deploy", ["prod", "blue green"])
    assert parse_invocation("review") == ("review", [])


def test_parse_invocation_errors():
    """Unbalanced quotes and missing names are ArgumentErrors."""
    with pytest.raises(ArgumentError):
        parse_invocation("/deploy 'oops")
    with pytest.raises(ArgumentError):
        parse_invocation("/")


@pytest.mark.asyncio
async def test_disabled_feature(workspace):
    """Disabled registry knows nothing and refuses operations."""
    cwd, home = workspace
    project_command(workspace, "hello.md", "Hello")
    registry = CommandRegistry(Config(), cwd=cwd, home=home)

    assert await registry.is_known("hello") is False
    with pytest.raises(FeatureDisabledError):
        await registry.expand("hello", [])
    with pytest.raises(FeatureDisabledError):
        await registry.list_commands()


@pytest.mark.asyncio
async def test_is_known(registry, workspace):
    """is_known reflects discovered commands."""
    project_command(workspace, "hello.md", "Hello")

    assert await registry.is_known("hello") is True
    assert await registry.is_known("nope") is False


@pytest.mark.asyncio
async def test_expand(registry, workspace):
    """expand resolves by name and applies arguments."""
    project_command(workspace, "greet.md", "---\ndescription: Greet\n---\nHello $ARGUMENTS")

    assert await registry.expand("greet", ["world"]) == "Hello world"
    assert await registry.expand_invocation('/greet "big world"') == "Hello 'big world'"


@pytest.mark.asyncio
async def test_expand_uses_stored_policy(registry, workspace):
    """Stored policy level governs expansion."""
    project_command(workspace, "clean.md", "Explain rm -rf")

    with pytest.raises(SecurityError):
        await registry.expand("clean", [])

    await registry.warn_security()
    assert await registry.expand("clean", []) == "Explain rm -rf"


@pytest.mark.asyncio
async def test_expand_unknown(registry):
    """Unknown names raise CommandNotFoundError."""
    with pytest.raises(CommandNotFoundError) as exc_info:
        await registry.expand("ghost", [])

    assert "ghost" in exc_info.value.user_message()


@pytest.mark.asyncio
async def test_get_broken_file_surfaces_error(registry, workspace):
    """A broken file is skipped in listings but raises when requested."""
    project_command(workspace, "broken.md", "---\ndescription: [oops\n---\nBody")
    project_command(workspace, "fine.md", "Fine")

    assert [s.name for s in await registry.list_commands()] == ["fine"]
    with pytest.raises(MetadataParseError):
        await registry.get("broken")


@pytest.mark.asyncio
async def test_get_picks_up_new_file(registry, workspace):
    """Files created after the last refresh are found on lookup."""
    await registry.list_commands()
    project_command(workspace, "late.md", "Late arrival")

    assert (await registry.get("late")).body == "Late arrival"


@pytest.mark.asyncio
async def test_list_commands_scopes(registry, workspace):
    """Listing merges scopes with project priority."""
    project_command(workspace, "deploy.md", "project")
    global_command(workspace, "deploy.md", "global")
    global_command(workspace, "standup.md", "global")

    summaries = await registry.list_commands()

    assert [(s.name, s.scope) for s in summaries] == [
        ("deploy", CommandScope.PROJECT),
        ("standup", CommandScope.GLOBAL),
    ]


@pytest.mark.asyncio
async def test_help_text_list(registry, workspace):
    """Command list groups by namespace with scope indicators."""
    project_command(
        workspace, "git-commit.md", "---\ndescription: Commit\nargument-hint: \"[msg]\"\n---\nCommit"
    )
    global_command(workspace, "hello.md", "Hello")

    text = await registry.help_text()

    assert "🎯 Available Custom Commands:" in text
    assert "## General Commands" in text
    assert "## git Commands" in text
    assert "  /git-commit [msg] (project) - Commit" in text
    assert "  /hello (user)" in text


@pytest.mark.asyncio
async def test_help_text_empty(registry):
    """Empty listing explains where to add commands."""
    text = await registry.help_text()

    assert text.startswith("No custom commands available")


@pytest.mark.asyncio
async def test_help_text_single(registry, workspace):
    """Per-command help shows metadata and a truncated preview."""
    project_command(workspace, "setup.md", "Set up")
    project_command(
        workspace,
        "build.md",
        "---\ndescription: Build it\nphase: impl\ndependencies: [setup, lint]\n---\n" + "x" * 300,
    )

    text = await registry.help_text("build")

    assert "📝 Custom Command: build" in text
    assert "📋 Description: Build it" in text
    assert "🔄 Phase: impl" in text
    assert "🔗 Dependencies: setup, lint (missing)" in text
    assert "🌐 Scope: project" in text
    assert text.endswith("x" * 200 + "...")


@pytest.mark.asyncio
async def test_check_conflicts(registry, workspace):
    """Custom commands named like built-ins are reported."""
    project_command(workspace, "help.md", "My help")
    project_command(workspace, "deploy.md", "Deploy")

    assert await registry.check_conflicts() == ["help"]


@pytest.mark.asyncio
async def test_refresh_counts(registry, workspace):
    """refresh rescans and returns the count."""
    assert await registry.refresh() == 0

    project_command(workspace, "a.md", "A")
    project_command(workspace, "sub/b.md", "B")

    assert await registry.refresh() == 2


@pytest.mark.asyncio
async def test_preview(registry, workspace):
    """preview reports without executing."""
    project_command(workspace, "status.md", "State: !`git status` for $ARGUMENTS")

    report = await registry.preview("status", ["repo"])

    assert report.shell_snippets == ["git status"]
    assert "Preview of /status repo" in report.to_display_string()


@pytest.mark.asyncio
async def test_security_operations(registry):
    """Policy operations persist and report status."""
    assert (await registry.get_policy()).level == SecurityLevel.ENFORCE

    await registry.disable_security()
    await registry.add_exemption("sudo rm")
    status = await registry.security_status()

    assert "Disabled" in status
    assert "sudo rm" in status

    await registry.remove_exemption("sudo rm")
    await registry.enable_security()
    assert await registry.security_status() == "🔒 Security Validation: Enabled (Error)"


@pytest.mark.asyncio
async def test_init_project(tmp_path):
    """init_project creates the directory with a sample command."""
    cwd = tmp_path / "fresh"
    cwd.mkdir()
    registry = CommandRegistry(
        Config(commands=CommandsConfig(enabled=True)), cwd=cwd, home=tmp_path / "home"
    )

    message = await registry.init_project()

    sample = cwd / ".slashcmd" / "commands" / SAMPLE_COMMAND_FILE
    assert sample.exists()
    assert "initialized" in message
    assert await registry.expand("sample-command", ["hi"]) != ""

    again = await registry.init_project()
    assert "already exists" in again
