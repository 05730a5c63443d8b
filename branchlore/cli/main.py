"""Command-line interface for branchlore"""

import sys
from argparse import Namespace
from typing import Callable, Dict, List, Optional

from rich.console import Console

from branchlore.cli.args import parse_args, parse_connection_string
from branchlore.config import Config
from branchlore.core.branch_repository import BranchRepositoryManager
from branchlore.exceptions import BranchloreError, NoCommitsError, NotInitializedError
from branchlore.services.branch_status_service import BranchStatusService
from branchlore.services.database_service import ConnectionCache, DatabaseService
from branchlore.services.display_service import DisplayService
from branchlore.services.git.backend import create_backend
from branchlore.services.storage_service import FileSystem
from branchlore.utils.logging import get_logger, setup_logging

console = Console()
logger = get_logger(__name__)


class CLIContext:
    """The collaborators a command needs, wired from one config."""

    def __init__(self, config: Config, verbose: bool = False):
        self.config = config
        self.cache = ConnectionCache()
        self.manager = BranchRepositoryManager(config, cache=self.cache)
        self.storage = FileSystem(config)
        self.databases = DatabaseService(self.manager, self.cache, self.storage)
        self.status = BranchStatusService(self.manager, self.storage)
        self.display = DisplayService(console=console, verbose=verbose)

    def open(self, command: str) -> BranchRepositoryManager:
        """Open an existing repository; only ``init`` may create one."""
        if not create_backend(self.config).is_repository():
            raise NotInitializedError(command)
        self.manager.init()
        return self.manager

    def close(self) -> None:
        self.databases.close()


def load_config(args: Namespace) -> Config:
    """Config file and environment, then command-line overrides."""
    config = Config.load(args.config)
    repo = getattr(args, "path", None) if args.command == "init" else None
    return config.with_overrides(
        repo_path=repo or args.repo,
        backend=args.backend,
        server_host=getattr(args, "host", None),
        server_port=getattr(args, "port", None),
    )


# -- Commands ------------------------------------------------------------------


def cmd_init(args: Namespace, ctx: CLIContext) -> int:
    ctx.manager.init()
    console.print(f"[green]Repository ready at {ctx.manager.repo_root}[/green]")
    console.print(f"  Main branch: {ctx.manager.trunk} @ {ctx.manager.current_revision()[:8]}")
    return 0


def cmd_branch(args: Namespace, ctx: CLIContext) -> int:
    manager = ctx.open("branch")

    if args.branch_command == "list":
        ctx.display.display_branches(manager.list_branches(), manager.trunk)
    elif args.branch_command == "create":
        branch = manager.create_branch(args.name)
        console.print(f"[green]Created branch {branch.name} at {branch.short_revision}[/green]")
    elif args.branch_command == "show":
        ctx.display.display_branch_status(ctx.status.get_branch_status(args.name))
    elif args.branch_command == "delete":
        manager.delete_branch(args.name)
        console.print(f"[green]Deleted branch {args.name}[/green]")
    return 0


def cmd_query(args: Namespace, ctx: CLIContext) -> int:
    ctx.open("query")
    result = ctx.databases.query(args.branch, args.sql)
    ctx.display.display_query_result(result, output=args.output)
    return 0


def cmd_commit(args: Namespace, ctx: CLIContext) -> int:
    manager = ctx.open("commit")
    before = manager.get_branch(args.branch)
    after = manager.commit_branch(args.branch, args.message)
    if after.revision == before.revision:
        console.print(f"[yellow]Nothing to commit on {args.branch}[/yellow]")
    else:
        console.print(f"[green]Committed {args.branch} at {after.short_revision}[/green]")
    return 0


def cmd_merge(args: Namespace, ctx: CLIContext) -> int:
    manager = ctx.open("merge")
    result = manager.merge(args.source, args.target)
    ctx.display.display_merge_result(args.source, args.target, result)
    return 0 if result.success else 1


def cmd_status(args: Namespace, ctx: CLIContext) -> int:
    ctx.open("status")
    ctx.display.display_status(ctx.status.repository_summary())
    return 0


def cmd_schema(args: Namespace, ctx: CLIContext) -> int:
    ctx.open("schema")
    ctx.display.display_schema(args.branch, ctx.databases.schema(args.branch))
    return 0


def cmd_connect(args: Namespace, ctx: CLIContext) -> int:
    """Read SQL from stdin until EOF, 'exit' or 'quit'."""
    try:
        database, branch = parse_connection_string(args.connection)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        return 1

    repo_name = ctx.config.resolved_repo_path().name
    if database != repo_name:
        console.print(f"[red]Error: unknown database '{database}' (this repository is '{repo_name}')[/red]")
        return 1

    manager = ctx.open("connect")
    branch = branch or manager.trunk
    manager.get_branch(branch)
    console.print(f"Connected to {database}@{branch}. Type 'exit' or 'quit' to leave.")

    while True:
        try:
            line = console.input(f"[bold]{database}@{branch}>[/bold] ")
        except EOFError:
            break
        statement = line.strip()
        if not statement:
            continue
        if statement.lower() in ("exit", "quit"):
            break
        if statement == ".tables":
            for table in ctx.databases.tables(branch):
                console.print(table)
            continue

        try:
            ctx.display.display_query_result(ctx.databases.query(branch, statement))
        except BranchloreError as e:
            console.print(f"[red]Error: {e}[/red]")
    return 0


def cmd_serve(args: Namespace, ctx: CLIContext) -> int:
    import uvicorn

    from branchlore.server.app import create_app

    app = create_app(
        ctx.manager,
        database_service=ctx.databases,
        status_service=ctx.status,
        initialize=True,
    )
    console.print(f"Serving {ctx.config.resolved_repo_path()} on http://{ctx.config.server_host}:{ctx.config.server_port}")
    uvicorn.run(app, host=ctx.config.server_host, port=ctx.config.server_port, log_level=ctx.config.log_level)
    return 0


COMMANDS: Dict[str, Callable[[Namespace, CLIContext], int]] = {
    "init": cmd_init,
    "branch": cmd_branch,
    "query": cmd_query,
    "commit": cmd_commit,
    "merge": cmd_merge,
    "status": cmd_status,
    "schema": cmd_schema,
    "connect": cmd_connect,
    "serve": cmd_serve,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    args = parse_args(argv)

    try:
        config = load_config(args)
    except ValueError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        return 1

    setup_logging(verbose=args.verbose, debug=args.debug, log_level=config.log_level)
    if args.debug:
        console.print("[yellow]Debug mode enabled[/yellow]")
        for key, value in config.to_dict().items():
            console.print(f"  {key}: {value}")

    ctx = CLIContext(config, verbose=args.verbose)
    try:
        return COMMANDS[args.command](args, ctx)
    except NotInitializedError:
        logger.error(f"No repository at {config.resolved_repo_path()}")
        console.print(
            f"[red]Error: no repository at {config.resolved_repo_path()}; run 'branchlore init' first[/red]"
        )
        return 1
    except NoCommitsError as e:
        logger.critical(str(e))
        console.print(f"[red]Error: {e}[/red]")
        return 1
    except BranchloreError as e:
        logger.error(str(e))
        console.print(f"[red]Error: {e}[/red]")
        if args.debug:
            console.print_exception()
        return 1
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    finally:
        ctx.close()


def main_entry() -> None:
    sys.exit(main())


if __name__ == "__main__":
    main_entry()
