"""Command-line argument parsing for branchlore."""

import argparse
from typing import List, Optional, Tuple

from branchlore.__version__ import __version__
from branchlore.constants import BACKENDS


def parse_connection_string(value: str) -> Tuple[str, Optional[str]]:
    """Split ``DATABASE[@BRANCH]`` into its parts.

    Raises:
        ValueError: If the database part is empty
    """
    database, sep, branch = value.partition("@")
    database = database.strip()
    if not database:
        raise ValueError(f"Invalid connection string '{value}': database name is required")
    if sep and not branch.strip():
        raise ValueError(f"Invalid connection string '{value}': branch name after '@' is empty")
    return database, (branch.strip() or None)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="branchlore",
        description="Git-style branching for SQLite databases",
        epilog="Each branch is a git worktree holding its own database file.",
    )
    parser.add_argument("--version", action="version", version=f"branchlore {__version__}")
    parser.add_argument("--config", metavar="PATH", help="Config file (default: ~/.branchlore/config.json)")
    parser.add_argument("--repo", metavar="PATH", help="Repository directory (overrides config)")
    parser.add_argument("--backend", choices=BACKENDS, help="Git backend to use")
    parser.add_argument("-v", "--verbose", action="store_true", help="Show verbose output")
    parser.add_argument(
        "--debug", action="store_true", help="Show debug information for troubleshooting"
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND")
    commands.required = True

    init = commands.add_parser("init", help="Create or open the repository")
    init.add_argument("path", nargs="?", help="Repository directory")

    branch = commands.add_parser("branch", help="Manage branches")
    branch_commands = branch.add_subparsers(dest="branch_command", metavar="ACTION")
    branch_commands.required = True
    branch_commands.add_parser("list", help="List branches")
    for action, help_text in (
        ("create", "Create a branch at the main branch's revision"),
        ("show", "Show a branch and its database"),
        ("delete", "Delete a branch and its worktree"),
    ):
        sub = branch_commands.add_parser(action, help=help_text)
        sub.add_argument("name", help="Branch name")

    query = commands.add_parser("query", help="Run SQL on a branch")
    query.add_argument("branch", help="Branch name")
    query.add_argument("sql", help="SQL statement")
    query.add_argument(
        "-o", "--output", choices=["table", "json"], default="table", help="Output format (default: table)"
    )

    commit = commands.add_parser("commit", help="Commit a branch's database")
    commit.add_argument("branch", help="Branch name")
    commit.add_argument("-m", "--message", help="Commit message")

    merge = commands.add_parser("merge", help="Merge one branch into another")
    merge.add_argument("source", help="Branch to merge from")
    merge.add_argument("target", help="Branch to merge into")

    commands.add_parser("status", help="Show repository status")

    schema = commands.add_parser("schema", help="Show the tables of a branch")
    schema.add_argument("branch", help="Branch name")

    connect = commands.add_parser("connect", help="Interactive SQL session on a branch")
    connect.add_argument("connection", metavar="DATABASE[@BRANCH]", help="Repository name and optional branch")

    serve = commands.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", help="Address to bind (overrides config)")
    serve.add_argument("--port", type=int, help="Port to bind (overrides config)")

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    return build_parser().parse_args(argv)
