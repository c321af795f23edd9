# Command line front-end
#
# Main functions:
#   - build_parser(): argparse sub-commands
#   - main(): parse, build AppConfig once, dispatch, map errors to exit codes
#   - interactive_menu(): numbered menu when started without arguments
#
# Exit codes:
#   - 0: finished (per-service failures are in the summary)
#   - 1: usage error, missing privilege, unknown service, config error
#   - 2: argparse usage error
#   - 130: interrupted (Ctrl-C)

import argparse
import getpass
import os
import shutil
import sys
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from . import __version__
from .application import execution, review
from .core.errors import ConfigError, PrivilegeError, RepoManagerError
from .core.process_control import terminate_running
from .core.pull_requests import select_pr_host
from .core.registry import service_names
from .core.runner import CommandRunner
from .infra import paths
from .infra.ai import select_reviewer
from .infra.logger import log_error, log_info, log_plain, log_success, log_warning
from .infra.secrets import ANTHROPIC_API_KEY, ANTHROPIC_MODEL, GITHUB_TOKEN, save_credential, write_secret
from .infra.settings import DEFAULT_AI_MODEL, AppConfig, build_app_config, write_config_file

PRIVILEGED_COMMANDS = ("update", "create", "drop", "sync", "pr")
PRIVILEGED_STASH_ACTIONS = ("save", "pop")
ROOT_REQUIRED_MESSAGE = "This command must be run as root (use sudo)"

InputFn = Callable[[str], str]


def validate_positive_int(value: str) -> int:
    try:
        num = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"must be an integer: {value}")
    if num < 1:
        raise argparse.ArgumentTypeError(f"must be a positive integer: {value}")
    return num


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="repo-manager",
        description="Branch and pull-request management across the microservice checkouts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s list                          # current branch of every service
  %(prog)s update REN-1234               # move every service to REN-1234
  %(prog)s update dev users --skip-deps  # one service, no composer/npm
  %(prog)s create 1234                   # REN-1234 from dev everywhere
  %(prog)s review 1234 --analyze         # all PRs of REN-1234, with AI review

Run without arguments for the interactive menu.
        """
    )
    parser.add_argument('-r', '--repo-root', metavar='PATH', help='repository root (overrides config)')
    parser.add_argument('-v', '--verbose', action='store_true', help='echo every command that runs')
    parser.add_argument('--version', action='version', version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest='command', metavar='COMMAND', help='available commands')

    subparsers.add_parser('list', aliases=['current'], help='show the current branch of every service')

    for name, help_text in (
        ('branches', 'list local and remote branches'),
        ('status', 'uncommitted files and ahead/behind counts'),
        ('changes', 'list modified, staged and untracked files'),
        ('sync', 'fetch and pull the current branch'),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument('service', nargs='?', help='only this service')

    drop = subparsers.add_parser('drop', help='discard all local changes (asks first)')
    drop.add_argument('service', nargs='?', help='only this service')
    drop.add_argument('--force', action='store_true', help='do not ask for confirmation')

    search = subparsers.add_parser('search', help='git grep across services')
    search.add_argument('pattern')
    search.add_argument('service', nargs='?', help='only this service')
    search.add_argument('--include', metavar='GLOB', help='limit to matching paths')

    recent = subparsers.add_parser('recent', help='recent commits')
    recent.add_argument('service', nargs='?', help='only this service')
    recent.add_argument('--days', type=validate_positive_int, default=7, metavar='N')
    recent.add_argument('--count', type=validate_positive_int, default=10, metavar='N')

    stash = subparsers.add_parser('stash', help='stash save / pop / list')
    stash.add_argument('action', choices=execution.STASH_ACTIONS)
    stash.add_argument('message', nargs='?', help='stash message (save only)')
    stash.add_argument('--service', help='only this service')

    update = subparsers.add_parser('update', help='switch services to a branch and install dependencies')
    update.add_argument('branch')
    update.add_argument('service', nargs='?', help='only this service')
    update.add_argument('--composer-update', action='store_true', help='composer update instead of install')
    update.add_argument('--skip-deps', action='store_true', help='skip composer/npm')
    update.add_argument('--branches-file', type=Path, metavar='FILE', help='service=branch lines overriding BRANCH')

    create = subparsers.add_parser('create', help='create REN-<ticket> from the base branch')
    create.add_argument('ticket')
    create.add_argument('service', nargs='?', help='only this service')

    pr = subparsers.add_parser('pr', help='open a pull request for the current branch')
    pr.add_argument('service', nargs='?', help='only this service')
    pr.add_argument('--title', required=True)
    pr.add_argument('--body', default='')
    pr.add_argument('--draft', action='store_true')

    prs = subparsers.add_parser('prs', help='list pull requests')
    prs.add_argument('service', nargs='?', help='only this service')
    prs.add_argument('--state', choices=('open', 'closed', 'all'), default='open')

    rev = subparsers.add_parser('review', help='collect every PR of a ticket across services')
    rev.add_argument('ticket')
    rev.add_argument('--analyze', action='store_true', help='run the AI review (or write a prompt file)')

    setup_config = subparsers.add_parser('setup-config', help='write the repository root to a config file')
    setup_config.add_argument('--global', dest='global_config', action='store_true', help='write the per-user config')
    setup_config.add_argument('--root', metavar='PATH', help='repository root to store')

    subparsers.add_parser('setup-ai', help='store the Anthropic API key')
    subparsers.add_parser('setup-github', help='GitHub CLI install / token instructions')
    subparsers.add_parser('help', help='show this help')
    return parser


def _geteuid() -> Optional[int]:
    geteuid = getattr(os, "geteuid", None)
    return geteuid() if geteuid else None


def require_privilege(config: AppConfig, euid: Optional[int] = None) -> None:
    """Mutating commands run ``sudo -u <service user>``, which needs root."""
    if not config.service_user:
        return
    euid = _geteuid() if euid is None else euid
    if euid is not None and euid != 0:
        raise PrivilegeError(ROOT_REQUIRED_MESSAGE)


def needs_privilege(args: argparse.Namespace) -> bool:
    if args.command in PRIVILEGED_COMMANDS:
        return True
    return args.command == "stash" and args.action in PRIVILEGED_STASH_ACTIONS


def confirm_prompt(text: str, input_fn: InputFn = input) -> bool:
    log_plain(text)
    try:
        answer = input_fn("Proceed? (y/N): ")
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def setup_config(config: AppConfig, global_config: bool, root: Optional[str], input_fn: InputFn = input) -> int:
    path = paths.get_home_config_path() if global_config else paths.get_local_config_path()
    if not root:
        answer = input_fn(f"Repository root [{config.repo_root}]: ").strip()
        root = answer or str(config.repo_root)
    write_config_file(path, root)
    log_success(f"Config written to {path} (repoRoot: {root})")
    return 0


def setup_ai(config: AppConfig, input_fn: InputFn = input, secret_fn: InputFn = getpass.getpass) -> int:
    log_info("Anthropic API key: https://console.anthropic.com/settings/keys")
    key = secret_fn("API key (leave empty to cancel): ").strip()
    if not key:
        log_warning("No key entered, nothing changed")
        return 0
    where = save_credential(ANTHROPIC_API_KEY, key, config.secrets_path)
    log_success(f"API key stored in {where if where == 'keyring' else config.secrets_path}")

    model = input_fn(f"Model [{config.ai.model or DEFAULT_AI_MODEL}]: ").strip()
    if model:
        write_secret(config.secrets_path, ANTHROPIC_MODEL, model)
        log_success(f"Model set to {model}")
    return 0


def setup_github(config: AppConfig, secret_fn: InputFn = getpass.getpass, which=shutil.which) -> int:
    if which("gh"):
        log_success("GitHub CLI (gh) is installed")
    else:
        log_warning("GitHub CLI (gh) is not installed")
        log_plain("  Install it from https://cli.github.com/ (apt install gh / brew install gh)")
    log_plain("  Authenticate with: gh auth login")
    log_plain("  or store a personal access token (repo scope) below")

    token = secret_fn("GitHub token (leave empty to skip): ").strip()
    if token:
        where = save_credential(GITHUB_TOKEN, token, config.secrets_path)
        log_success(f"Token stored in {where if where == 'keyring' else config.secrets_path}")
    return 0


def dispatch(args: argparse.Namespace, config: AppConfig, input_fn: InputFn = input) -> int:
    runner = CommandRunner(service_user=config.service_user, verbose=config.verbose)
    command = args.command

    if needs_privilege(args):
        require_privilege(config)

    if command in ("list", "current"):
        execution.show_current_branches(config, runner)
    elif command == "branches":
        execution.show_branches(config, runner, args.service)
    elif command == "status":
        execution.show_status(config, runner, args.service)
    elif command == "changes":
        execution.show_changes(config, runner, args.service)
    elif command == "drop":
        execution.run_drop(
            config, runner, args.service, force=args.force,
            confirm=lambda text: confirm_prompt(text, input_fn),
        )
    elif command == "sync":
        execution.run_sync(config, runner, args.service)
    elif command == "search":
        execution.run_search(config, runner, args.pattern, args.service, include=args.include)
    elif command == "recent":
        execution.run_recent(config, runner, args.service, days=args.days, count=args.count)
    elif command == "stash":
        execution.run_stash(config, runner, args.action, message=args.message, service=args.service)
    elif command == "update":
        execution.run_update(
            config, runner, args.branch, args.service,
            use_composer_update=args.composer_update,
            skip_deps=args.skip_deps,
            branches_file=args.branches_file,
        )
    elif command == "create":
        execution.run_create(config, runner, args.ticket, args.service)
    elif command == "pr":
        host = select_pr_host(runner, config.github_token)
        execution.run_pull_request(
            config, runner, host, args.title, body=args.body, draft=args.draft, service=args.service,
        )
    elif command == "prs":
        host = select_pr_host(runner, config.github_token)
        review.show_pull_requests(config, runner, host, state=args.state, service=args.service)
    elif command == "review":
        host = select_pr_host(runner, config.github_token)
        review.review_ticket(config, runner, host, select_reviewer(config.ai), args.ticket, analyze=args.analyze)
    elif command == "setup-config":
        return setup_config(config, args.global_config, args.root, input_fn)
    elif command == "setup-ai":
        return setup_ai(config, input_fn)
    elif command == "setup-github":
        return setup_github(config)
    else:
        raise ConfigError(f"Unknown command: {command}")
    return 0


MENU_OPTIONS = (
    "List current branches",
    "List available branches (all services)",
    "List available branches (single service)",
    "Update all services to a branch",
    "Update single service to a branch",
    "Create new branch from the base branch",
    "Show status",
    "Exit",
)


def _menu_action(choice: str, config: AppConfig, runner: CommandRunner, input_fn: InputFn) -> bool:
    """Run one menu choice; returns False when the user picked Exit."""
    if choice == "1":
        execution.show_current_branches(config, runner)
    elif choice == "2":
        execution.show_branches(config, runner)
    elif choice == "3":
        execution.show_branches(config, runner, input_fn("Enter service name: ").strip())
    elif choice == "4":
        require_privilege(config)
        execution.run_update(config, runner, input_fn("Enter target branch: ").strip())
    elif choice == "5":
        require_privilege(config)
        service = input_fn("Enter service name: ").strip()
        execution.run_update(config, runner, input_fn("Enter target branch: ").strip(), service)
    elif choice == "6":
        require_privilege(config)
        ticket = input_fn(f"Enter ticket number (e.g., 1234 for {config.ticket_prefix}-1234): ").strip()
        service = input_fn("Enter service name (or press Enter for all services): ").strip()
        execution.run_create(config, runner, ticket, service or None)
    elif choice == "7":
        execution.show_status(config, runner)
    elif choice == str(len(MENU_OPTIONS)):
        return False
    else:
        log_error("Invalid option")
    return True


def interactive_menu(config: AppConfig, input_fn: InputFn = input) -> int:
    runner = CommandRunner(service_user=config.service_user, verbose=config.verbose)
    log_info(f"Services: {', '.join(service_names(config.registry))}")
    while True:
        log_plain()
        log_plain("=== Repository Manager ===")
        for index, label in enumerate(MENU_OPTIONS, 1):
            log_plain(f"{index}. {label}")
        try:
            choice = input_fn(f"\nSelect an option (1-{len(MENU_OPTIONS)}): ").strip()
        except EOFError:
            return 0

        try:
            if not _menu_action(choice, config, runner, input_fn):
                return 0
        except RepoManagerError as exc:
            log_error(str(exc))

        try:
            input_fn("\nPress Enter to continue...")
        except EOFError:
            return 0


def main(argv: Optional[Sequence[str]] = None, input_fn: InputFn = input) -> int:
    parser = build_parser()
    argv_list: List[str] = list(sys.argv[1:] if argv is None else argv)
    args = parser.parse_args(argv_list)

    if args.command == "help":
        parser.print_help()
        return 0

    try:
        config = build_app_config(repo_root_override=args.repo_root, verbose=args.verbose)
        if config.verbose:
            log_info(f"Repository root: {config.repo_root} (from {config.root_source})")
        if args.command is None:
            return interactive_menu(config, input_fn)
        return dispatch(args, config, input_fn)
    except KeyboardInterrupt:
        log_warning("Interrupted, stopped the running command" if terminate_running() else "Interrupted")
        return 130
    except RepoManagerError as exc:
        log_error(str(exc))
        return 1


if __name__ == "__main__":
    sys.exit(main())
