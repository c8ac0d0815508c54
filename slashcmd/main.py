"""slashcmd entry point."""
import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from slashcmd.commands.registry import CommandRegistry
from slashcmd.config.settings import Config, load_config
from slashcmd.exceptions import SlashCmdError

logger = logging.getLogger(__name__)

TRUE_VALUES = {"1", "true", "yes", "on"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="slashcmd",
        description="Manage and expand custom slash commands.",
    )
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    sub = parser.add_subparsers(dest="action", required=True)

    run = sub.add_parser("run", help="Expand a command and print the result")
    run.add_argument("name")
    run.add_argument("args", nargs=argparse.REMAINDER)

    sub.add_parser("list", help="List available commands")

    show = sub.add_parser("show", help="Show help for one command or all commands")
    show.add_argument("name", nargs="?")

    preview = sub.add_parser("preview", help="Show what a command would do")
    preview.add_argument("name")
    preview.add_argument("args", nargs=argparse.REMAINDER)

    sub.add_parser("init", help="Create the project commands directory")
    sub.add_parser("secure_on", help="Block commands with security findings")
    sub.add_parser("secure_off", help="Ignore security findings")
    sub.add_parser("secure_warn", help="Log security findings without blocking")
    sub.add_parser("secure_status", help="Show the security policy")

    exempt = sub.add_parser("exempt", help="Exempt a pattern from security findings")
    exempt.add_argument("pattern")
    unexempt = sub.add_parser("unexempt", help="Remove a security exemption")
    unexempt.add_argument("pattern")

    return parser


def apply_env_overrides(config: Config) -> Config:
    """Environment variables win over the config file."""
    enabled = os.getenv("SLASHCMD_ENABLED")
    if enabled is not None:
        config.commands.enabled = enabled.strip().lower() in TRUE_VALUES

    log_level = os.getenv("SLASHCMD_LOG_LEVEL")
    if log_level:
        config.log_level = log_level.strip().upper()
    return config


async def run_action(registry: CommandRegistry, args: argparse.Namespace) -> str:
    """Dispatch one subcommand and return the text to print."""
    action = args.action

    if action == "run":
        return await registry.expand(args.name, list(args.args))
    if action == "list":
        summaries = await registry.list_commands()
        lines = [summary.usage_line().strip() for summary in summaries]
        conflicts = await registry.check_conflicts(summaries)
        if conflicts:
            lines.append("")
            lines.append("⚠️ Conflicts with built-in commands (custom command will be ignored):")
            lines.extend(f"  /{name}" for name in conflicts)
        return "\n".join(lines) if lines else "No custom commands found."
    if action == "show":
        return await registry.help_text(args.name)
    if action == "preview":
        report = await registry.preview(args.name, list(args.args))
        return report.to_display_string()
    if action == "init":
        return await registry.init_project()
    if action == "secure_on":
        await registry.enable_security()
        return "✅ Security validation enabled (blocking)"
    if action == "secure_off":
        await registry.disable_security()
        return "⚠️ Security validation disabled"
    if action == "secure_warn":
        await registry.warn_security()
        return "⚠️ Security validation set to warning only"
    if action == "secure_status":
        return await registry.security_status()
    if action == "exempt":
        await registry.add_exemption(args.pattern)
        return f"✅ Exempted pattern: {args.pattern}"
    if action == "unexempt":
        await registry.remove_exemption(args.pattern)
        return f"✅ Removed exemption: {args.pattern}"

    raise ValueError(f"Unknown action: {action}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    load_dotenv()
    args = build_parser().parse_args(argv)

    try:
        config = apply_env_overrides(load_config(args.config))
    except SlashCmdError as e:
        print(e.user_message(), file=sys.stderr)
        return 1

    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, config.log_level, logging.INFO),
    )

    registry = CommandRegistry(config)
    try:
        output = asyncio.run(run_action(registry, args))
    except SlashCmdError as e:
        logger.debug(f"{args.action} failed: {e}")
        print(e.user_message(), file=sys.stderr)
        return 1

    print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
