"""gh-switcher command-line interface."""

from __future__ import annotations

import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .exceptions import GhsError, NotFoundError, SshProbeError
from .guard import SKIP_ENV_VAR, is_bypassed
from .health import (
    check_profile,
    detect_ssh_key,
    key_permissions_too_open,
    probe_ssh_key,
)
from .logging_config import setup_logging
from .models import (
    ConfigScope,
    GuardResult,
    GuardStatus,
    HookState,
    Identity,
    ProbeResult,
)
from .services import Services, build_services

app = typer.Typer(
    name="ghs",
    help="gh-switcher: per-directory GitHub identities for git, SSH and gh",
    add_completion=False,
)
guard_app = typer.Typer(
    help="Pre-commit guard that blocks commits made with the wrong identity",
)
app.add_typer(guard_app, name="guard")

console = Console()
err_console = Console(stderr=True)


def _get_version_string() -> str:
    """Get version string from package metadata."""
    try:
        return get_version("gh-switcher")
    except PackageNotFoundError:
        return f"{__version__} (development)"


def version_callback(value: bool) -> None:
    """Callback for --version flag."""
    if value:
        console.print(f"gh-switcher version {_get_version_string()}")
        raise typer.Exit


def _services() -> Services:
    return build_services()


def _fail(error: GhsError, exit_code: int = 1) -> typer.Exit:
    """Print an error with its remediation on stderr and return the exit."""
    err_console.print(f"[red]Error:[/red] {escape(str(error))}")
    if error.remediation:
        err_console.print(f"  [dim]→[/dim] {escape(error.remediation)}")
    return typer.Exit(exit_code)


def _describe(identity: Identity) -> str:
    name = identity.name or "(no name)"
    email = identity.email or "(no email)"
    return escape(f"{name} <{email}>")


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Log debug details to stderr",
    ),
) -> None:
    """gh-switcher: per-directory GitHub identities for git, SSH and gh."""
    setup_logging(verbose=verbose)


@app.command()
def users() -> None:
    """List identities with the numbers used by switch, assign and edit."""
    try:
        services = _services()
        identities = services.profiles.list()
        if not identities:
            console.print("No identities configured yet")
            console.print("  Use 'ghs add <username>' to add one")
            return

        current = services.auth.current_user(services.host)

        table = Table(title="GitHub identities")
        table.add_column("#", justify="right")
        table.add_column("Username", style="cyan")
        table.add_column("Name")
        table.add_column("Email")
        table.add_column("SSH key")
        table.add_column("Last used", style="dim")

        for index, identity in enumerate(identities, start=1):
            username = escape(identity.username)
            if identity.username == current:
                username = f"[green]{username} (current)[/green]"
            table.add_row(
                str(index),
                username,
                escape(identity.name or ""),
                escape(identity.email or ""),
                escape(identity.ssh_key_path or ""),
                identity.last_used.strftime("%Y-%m-%d %H:%M") if identity.last_used else "",
            )

        console.print(table)
    except GhsError as e:
        raise _fail(e) from e


@app.command()
def add(
    username: str = typer.Argument(
        ...,
        help="GitHub username, or 'current' for the active gh account",
    ),
    name: str | None = typer.Option(None, "--name", help="git user.name"),
    email: str | None = typer.Option(None, "--email", help="git user.email"),
    signing_key: str | None = typer.Option(
        None, "--signing-key", help="git user.signingkey",
    ),
    ssh_key: str | None = typer.Option(
        None, "--ssh-key", help="Private SSH key for this account",
    ),
    auto_sign: bool | None = typer.Option(
        None,
        "--auto-sign/--no-auto-sign",
        help="Sign every commit with the signing key (--from-git reads commit.gpgsign)",
    ),
    from_git: bool = typer.Option(
        False,
        "--from-git",
        help="Fill unset fields from the current git config and detect an SSH key in ~/.ssh",
    ),
    no_ssh_check: bool = typer.Option(
        False, "--no-ssh-check", help="Do not test the SSH key against the host",
    ),
) -> None:
    """Add a GitHub identity."""
    try:
        services = _services()
        cwd = Path.cwd()

        if username == "current":
            detected = services.auth.current_user(services.host)
            if not detected:
                err_console.print("[red]Error:[/red] No active gh account found")
                err_console.print("  [dim]→[/dim] Run: gh auth login")
                raise typer.Exit(1)
            username = detected
            console.print(f"Adding current GitHub user: [cyan]{escape(username)}[/cyan]")

        detected_key = False
        if from_git:
            name = name or services.git.get_config("user.name", cwd)
            email = email or services.git.get_config("user.email", cwd)
            signing_key = signing_key or services.git.get_config("user.signingkey", cwd)
            if auto_sign is None:
                gpgsign = services.git.get_config("commit.gpgsign", cwd) or ""
                auto_sign = gpgsign.strip().lower() == "true"
            if not ssh_key:
                found = detect_ssh_key(username)
                if found is not None:
                    ssh_key = str(found)
                    detected_key = True
                    console.print(f"Detected SSH key: {escape(ssh_key)}")

        name = name or username
        email = email or f"{username}@users.noreply.github.com"

        if ssh_key and not no_ssh_check:
            if not _check_new_ssh_key(services, username, ssh_key, detected=detected_key):
                ssh_key = None

        index = services.profiles.add(
            username,
            name=name,
            email=email,
            signing_key=signing_key,
            ssh_key_path=ssh_key,
            auto_sign=bool(auto_sign),
        )
        identity = services.profiles.get(username)
        console.print(
            f"[green]✓[/green] Added #{index} [cyan]{escape(username)}[/cyan]: "
            f"{_describe(identity)}",
        )
        if identity.signing_key:
            console.print(
                f"  Signing key: {escape(identity.signing_key)} (auto-sign: {identity.auto_sign})",
            )
        if identity.ssh_key_path:
            console.print(f"  SSH key: {escape(identity.ssh_key_path)}")
    except GhsError as e:
        raise _fail(e) from e


def _check_new_ssh_key(
    services: Services,
    username: str,
    ssh_key: str,
    detected: bool = False,
) -> bool:
    """Probe a key before it is stored.

    Rejection aborts for a key the user named and drops a detected key;
    an unreachable host only warns.

    Returns:
        Whether the key should be stored
    """
    probe_target = Identity.model_construct(username=username, ssh_key_path=ssh_key)
    key = probe_target.ssh_key
    if key is None or not key.is_file():
        console.print(f"[yellow]Warning:[/yellow] SSH key file does not exist: {escape(ssh_key)}")
        return True

    try:
        probe_ssh_key(probe_target, services.probe, services.host)
    except SshProbeError as e:
        if e.result == ProbeResult.UNREACHABLE:
            console.print(
                f"[yellow]Warning:[/yellow] {escape(str(e))}; "
                "saving anyway, test later with 'ghs test-ssh'",
            )
            return True
        if detected:
            console.print(
                f"[yellow]Warning:[/yellow] detected key {escape(ssh_key)} was rejected; "
                "not storing it",
            )
            return False
        raise
    console.print(f"[green]✓[/green] SSH key authenticates with {escape(services.host)}")
    return True


@app.command()
def remove(
    ref: str = typer.Argument(..., help="Username or number from 'ghs users'"),
) -> None:
    """Remove an identity. Its directory assignments stay until 'assign --clean'."""
    try:
        services = _services()
        identity = services.profiles.lookup(ref)

        if identity.username == services.auth.current_user(services.host):
            console.print(
                "[yellow]Warning:[/yellow] removing the currently active GitHub account",
            )

        services.profiles.remove(identity.username)
        console.print(f"[green]✓[/green] Removed {escape(identity.username)}")

        dangling = [
            a for a in services.assignments.list() if a.username == identity.username
        ]
        if dangling:
            console.print(
                f"  {len(dangling)} directory assignment(s) still point to "
                f"{escape(identity.username)}; run 'ghs assign --clean' to drop them",
            )
    except GhsError as e:
        raise _fail(e) from e


@app.command()
def show(
    ref: str = typer.Argument(..., help="Username or number from 'ghs users'"),
) -> None:
    """Show every stored field of an identity."""
    try:
        services = _services()
        identity = services.profiles.lookup(ref)
        index = services.profiles.index_of(identity.username)

        table = Table(title=f"#{index} {escape(identity.username)}")
        table.add_column("Field", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("name", escape(identity.name or ""))
        table.add_row("email", escape(identity.email or ""))
        table.add_row("signing_key", escape(identity.signing_key or ""))
        table.add_row("ssh_key_path", escape(identity.ssh_key_path or ""))
        table.add_row("auto_sign", str(identity.auto_sign).lower())
        table.add_row(
            "last_used",
            identity.last_used.isoformat() if identity.last_used else "never",
        )
        console.print(table)
    except GhsError as e:
        raise _fail(e) from e


@app.command()
def edit(
    ref: str = typer.Argument(..., help="Username or number from 'ghs users'"),
    field: str = typer.Argument(
        ...,
        help="name, email, signing_key, ssh_key_path or auto_sign",
    ),
    value: str = typer.Argument(..., help="New value; empty string clears the field"),
) -> None:
    """Change one field of an identity."""
    try:
        services = _services()
        identity = services.profiles.lookup(ref)
        updated = services.profiles.update(identity.username, field, value)
        new_value = getattr(updated, field)
        shown = "(cleared)" if new_value is None else escape(str(new_value))
        console.print(
            f"[green]✓[/green] {escape(updated.username)}.{field} = {shown}",
        )
    except GhsError as e:
        raise _fail(e) from e


@app.command()
def switch(
    ref: str = typer.Argument(..., help="Username or number from 'ghs users'"),
    global_scope: bool = typer.Option(
        False, "--global", help="Write global git config",
    ),
    local_scope: bool = typer.Option(
        False, "--local", help="Write the current repository's git config",
    ),
) -> None:
    """Apply an identity to git config, the SSH command and gh auth."""
    if global_scope and local_scope:
        err_console.print("[red]Error:[/red] --global and --local are mutually exclusive")
        raise typer.Exit(2)

    scope: ConfigScope | None = None
    if global_scope:
        scope = ConfigScope.GLOBAL
    elif local_scope:
        scope = ConfigScope.LOCAL

    try:
        services = _services()
        identity = services.profiles.lookup(ref)
        report = services.reconciler().switch(identity.username, Path.cwd(), scope)

        console.print(
            f"[green]✓[/green] Switched to [cyan]{escape(identity.username)}[/cyan] "
            f"({report.scope.value} git config)",
        )
        console.print(f"  git: {_describe(identity)}")
        if identity.signing_key:
            console.print(
                f"  signing: {escape(identity.signing_key)} (auto-sign: {identity.auto_sign})",
            )
        if report.ssh_command:
            console.print(f"  ssh: {escape(report.ssh_command)}")
        console.print(f"  gh: active account on {escape(services.host)}")
    except GhsError as e:
        raise _fail(e) from e


@app.command()
def assign(
    args: list[str] | None = typer.Argument(
        None,
        help="[DIR] USER to assign, or DIR with --remove",
    ),
    list_: bool = typer.Option(False, "--list", "-l", help="List assignments"),
    remove_: bool = typer.Option(
        False, "--remove", "-r", help="Remove the assignment for DIR (default: cwd)",
    ),
    clean: bool = typer.Option(
        False,
        "--clean",
        help="Drop assignments whose identity or directory no longer exists",
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", help="With --clean, only show what would be removed",
    ),
) -> None:
    """Assign an identity to a directory and everything below it."""
    args = args or []
    try:
        services = _services()

        if sum([list_, remove_, clean]) > 1:
            err_console.print(
                "[red]Error:[/red] --list, --remove and --clean are mutually exclusive",
            )
            raise typer.Exit(2)

        if list_:
            _list_assignments(services)
            return

        if clean:
            _clean_assignments(services, dry_run)
            return

        if remove_:
            if len(args) > 1:
                err_console.print("[red]Error:[/red] Usage: ghs assign --remove [DIR]")
                raise typer.Exit(2)
            directory = Path(args[0]) if args else Path.cwd()
            removed = services.assignments.unassign(directory)
            console.print(
                f"[green]✓[/green] Removed assignment {escape(removed.directory)} "
                f"→ {escape(removed.username)}",
            )
            return

        if not args:
            resolution = services.resolver().resolve(Path.cwd())
            if resolution is None:
                console.print("No identity assigned to this directory")
                console.print("  Use 'ghs assign <user>' to assign one")
            else:
                inherited = "" if resolution.exact else " (inherited)"
                console.print(
                    f"{escape(resolution.directory)} → "
                    f"[cyan]{escape(resolution.username)}[/cyan]{inherited}",
                )
            return

        if len(args) > 2:
            err_console.print("[red]Error:[/red] Usage: ghs assign [DIR] USER")
            raise typer.Exit(2)

        directory = Path(args[0]) if len(args) == 2 else Path.cwd()
        identity = services.profiles.lookup(args[-1])
        if not directory.expanduser().is_dir():
            msg = f"Directory not found: {directory}"
            raise NotFoundError(msg)

        assignment = services.assignments.assign(directory, identity.username)
        console.print(
            f"[green]✓[/green] Assigned {escape(assignment.directory)} → "
            f"[cyan]{escape(assignment.username)}[/cyan]",
        )
    except GhsError as e:
        raise _fail(e) from e


def _list_assignments(services: Services) -> None:
    assignments = services.assignments.list()
    if not assignments:
        console.print("No directories assigned yet")
        return

    known = services.profiles.usernames()
    table = Table(title="Directory assignments")
    table.add_column("Directory", style="cyan")
    table.add_column("Identity", style="green")
    table.add_column("Notes", style="yellow")
    for assignment in assignments:
        notes = []
        if assignment.username not in known:
            notes.append("identity removed")
        if not Path(assignment.directory).is_dir():
            notes.append("directory missing")
        table.add_row(
            escape(assignment.directory),
            escape(assignment.username),
            ", ".join(notes),
        )
    console.print(table)


def _clean_assignments(services: Services, dry_run: bool) -> None:
    known = services.profiles.usernames()
    stale = services.assignments.find_stale(known)
    if not stale:
        console.print("Nothing to clean")
        return

    verb = "Would remove" if dry_run else "Removing"
    for assignment in stale:
        console.print(
            f"  {verb} {escape(assignment.directory)} → {escape(assignment.username)}",
        )
    if dry_run:
        return

    removed = services.assignments.clean(known)
    console.print(f"[green]✓[/green] Removed {removed} stale assignment(s)")


def _print_guard_result(result: GuardResult, out: Console) -> None:
    actual = result.actual
    out.print(f"Directory: {escape(result.directory)}")
    if result.expected_username:
        inherited = ""
        if result.assigned_directory and result.assigned_directory != result.directory:
            inherited = f" (from {escape(result.assigned_directory)})"
        out.print(f"Assigned identity: [cyan]{escape(result.expected_username)}[/cyan]{inherited}")
    else:
        out.print("Assigned identity: [yellow]none[/yellow]")
    out.print(f"gh account: {escape(actual.auth_user or '(none)')}")
    out.print(
        f"git config: {escape(actual.name or '(unset)')} "
        f"<{escape(actual.email or '(unset)')}>",
    )
    for issue in result.issues:
        out.print(
            f"  [red]✗[/red] {issue.field}: expected {escape(issue.expected or '(unset)')}, "
            f"found {escape(issue.actual or '(unset)')}",
        )
        out.print(f"    [dim]→[/dim] {escape(issue.remediation)}")


@app.command()
def status() -> None:
    """Show the expected and the active identity for this directory."""
    try:
        services = _services()
        result = services.validator().check(Path.cwd())
        _print_guard_result(result, console)

        if result.status == GuardStatus.MATCHED:
            console.print("[green]✓ Active identity matches the assignment[/green]")
        elif result.status == GuardStatus.UNASSIGNED:
            console.print("[yellow]No assignment[/yellow]: run 'ghs assign <user>'")
        else:
            console.print("[red]✗ Active identity does not match the assignment[/red]")
    except GhsError as e:
        raise _fail(e) from e


@guard_app.command("install")
def guard_install() -> None:
    """Install the pre-commit guard hook in this repository."""
    try:
        report = _services().hooks().install(Path.cwd())
        console.print(f"[green]✓[/green] Guard hook installed at {escape(str(report.hook_path))}")
        if report.backup_path:
            console.print(
                f"  Existing hook kept as {escape(str(report.backup_path))} and still runs first",
            )
        console.print(f"  Bypass once with: {SKIP_ENV_VAR}=1 git commit ...")
    except GhsError as e:
        raise _fail(e) from e


@guard_app.command("uninstall")
def guard_uninstall() -> None:
    """Remove the pre-commit guard hook from this repository."""
    try:
        report = _services().hooks().uninstall(Path.cwd())
        console.print("[green]✓[/green] Guard hook removed")
        if report.state == HookState.FOREIGN:
            console.print(f"  Restored previous hook at {escape(str(report.hook_path))}")
    except GhsError as e:
        raise _fail(e) from e


@guard_app.command("status")
def guard_status() -> None:
    """Show whether the guard hook is installed in this repository."""
    try:
        report = _services().hooks().status(Path.cwd())
        if report.state == HookState.INSTALLED:
            console.print(f"[green]✓ Guard hook installed[/green] at {escape(str(report.hook_path))}")
        elif report.state == HookState.FOREIGN:
            console.print(
                f"[yellow]A different pre-commit hook is installed[/yellow] at "
                f"{escape(str(report.hook_path))}",
            )
            console.print("  'ghs guard install' keeps it as a backup that still runs")
        else:
            console.print("[yellow]Guard hook not installed[/yellow]")
            console.print("  Run 'ghs guard install' to enable it")
        if is_bypassed():
            console.print(f"[yellow]{SKIP_ENV_VAR} is set: validation is bypassed[/yellow]")
    except GhsError as e:
        raise _fail(e) from e


@guard_app.command("test")
def guard_test() -> None:
    """Run the guard check verbosely without committing."""
    try:
        if is_bypassed():
            console.print(f"[yellow]{SKIP_ENV_VAR} is set: a commit would skip validation[/yellow]")
        result = _services().validator().check(Path.cwd())
        _print_guard_result(result, console)
        if result.status == GuardStatus.MATCHED:
            console.print("[green]✓ Commit would be allowed[/green]")
        elif result.status == GuardStatus.UNASSIGNED:
            console.print("[yellow]Commit would be allowed with a warning (no assignment)[/yellow]")
        else:
            console.print("[red]✗ Commit would be blocked[/red]")
            raise typer.Exit(1)
    except GhsError as e:
        raise _fail(e) from e


@guard_app.command("run")
def guard_run() -> None:
    """Entry point for the pre-commit hook: exit 1 on identity mismatch."""
    if is_bypassed():
        return
    try:
        result = _services().validator().check(Path.cwd())
    except GhsError as e:
        raise _fail(e) from e

    if result.status == GuardStatus.MATCHED:
        return
    if result.status == GuardStatus.UNASSIGNED:
        err_console.print(
            "[yellow]gh-switcher:[/yellow] no identity assigned to this directory; "
            "run 'ghs assign <user>' to enable commit checks",
        )
        return

    err_console.print("[red]gh-switcher: commit blocked, wrong GitHub identity[/red]")
    _print_guard_result(result, err_console)
    err_console.print(f"To bypass (not recommended): {SKIP_ENV_VAR}=1 git commit ...")
    raise typer.Exit(1)


@app.command("test-ssh")
def ssh_test(
    ref: str | None = typer.Argument(
        None,
        help="Username or number; defaults to the identity assigned here",
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Report only via exit code"),
) -> None:
    """Check that an identity's SSH key authenticates with GitHub.

    Exit codes: 0 success, 1 key rejected or missing, 2 host unreachable.
    """
    out = Console(quiet=True) if quiet else console
    try:
        services = _services()
        identity = _identity_for_ssh_test(services, ref)

        key = identity.ssh_key
        if key is not None and key.is_file() and key_permissions_too_open(key):
            out.print(
                f"[yellow]Warning:[/yellow] {escape(str(key))} is readable by others; "
                f"run: chmod 600 {escape(str(key))}",
            )

        out.print(f"Testing SSH key for {escape(identity.username)} against {escape(services.host)}...")
        probe_ssh_key(identity, services.probe, services.host)
        out.print(f"[green]✓[/green] SSH key for {escape(identity.username)} authenticates")
    except SshProbeError as e:
        code = 2 if e.result == ProbeResult.UNREACHABLE else 1
        if quiet:
            raise typer.Exit(code) from e
        raise _fail(e, exit_code=code) from e
    except GhsError as e:
        if quiet:
            raise typer.Exit(1) from e
        raise _fail(e) from e


def _identity_for_ssh_test(services: Services, ref: str | None) -> Identity:
    if ref:
        return services.profiles.lookup(ref)
    resolution = services.resolver().resolve(Path.cwd())
    if resolution is not None:
        return services.profiles.get(resolution.username)
    current = services.auth.current_user(services.host)
    if current:
        return services.profiles.get(current)
    msg = "No identity given, assigned here, or active in gh"
    raise NotFoundError(msg, remediation="Run: ghs test-ssh <user>")


@app.command()
def validate(
    ref: str | None = typer.Argument(
        None, help="Username or number; defaults to every identity",
    ),
) -> None:
    """Check profiles for missing fields, SSH key problems and gh login."""
    try:
        services = _services()
        identities = [services.profiles.lookup(ref)] if ref else services.profiles.list()
        if not identities:
            console.print("No identities configured yet")
            return

        registered = services.auth.registered_users(services.host)
        healthy = True
        for identity in identities:
            issues = check_profile(identity, registered)
            if not issues:
                console.print(f"[green]✓[/green] {escape(identity.username)}: profile complete")
                continue
            healthy = False
            console.print(f"[yellow]![/yellow] {escape(identity.username)}:")
            for issue in issues:
                console.print(f"    {escape(issue.message)}")
                console.print(f"      [dim]→[/dim] {escape(issue.remediation)}")

        if not healthy:
            raise typer.Exit(1)
    except GhsError as e:
        raise _fail(e) from e


def main() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)


if __name__ == "__main__":
    main()
