# acpkg/cli.py
"""
Command-line interface of the content package manager (`acp`).
"""
from __future__ import annotations
import argparse
import logging
import sys
from collections.abc import Sequence
from typing import NoReturn

from acpkg.app.globals import setConfigService
from acpkg.config.service import ConfigService
from acpkg.content.descriptor import Category
from acpkg.core.errors import AcpError
from acpkg.core.logging import clearLogContext, configureLogging
from acpkg.lifecycle.create import CreateOptions, createPackage
from acpkg.lifecycle.info import listPackages, packageDetails
from acpkg.lifecycle.install import InstallOptions, installPackage
from acpkg.lifecycle.remove import RemoveOptions, removePackage
from acpkg.lifecycle.search import SearchOptions, searchPackages
from acpkg.lifecycle.update import UpdateOptions, updatePackages
from acpkg.lifecycle.validate import validatePackage

logger = logging.getLogger(__name__)

__all__ = ["buildParser", "main"]

EXIT_OK = 0
EXIT_ERROR = 1



class _Parser(argparse.ArgumentParser):
    """Usage errors exit with the same code as every other failure."""
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(EXIT_ERROR, f"{self.prog}: error: {message}\n")



def buildParser() -> argparse.ArgumentParser:
    parser = _Parser(prog="acp", description="Install, update and validate ACP content packages")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging on stderr")
    parser.add_argument("--config", metavar="FILE", help="Configuration file (default: ~/.acp/config.json5)")

    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True

    # install
    install = sub.add_parser("install", help="Install a package from a repository or local directory")
    install.add_argument("--repo", required=True, help="Git URL, file:// URL or local directory")
    install.add_argument("--global", "-g", dest="isGlobal", action="store_true", help="Install to ~/.acp/agent")
    install.add_argument("--experimental", action="store_true", help="Include experimental entries")
    install.add_argument("--yes", "-y", action="store_true", help="Skip confirmations")
    install.add_argument("--list", dest="listOnly", action="store_true", help="Show what would be installed")
    for category in (Category.PATTERNS, Category.COMMANDS, Category.DESIGNS, Category.FILES):
        install.add_argument(
            f"--{category.value}",
            nargs="*",
            metavar="NAME",
            default=None,
            help=f"Only {category.value} (all of them when no names follow)",
        )

    # update
    update = sub.add_parser("update", help="Update installed packages")
    update.add_argument("package", nargs="?", help="Package to update (default: all)")
    update.add_argument("--check", action="store_true", help="Only report available updates")
    drift = update.add_mutually_exclusive_group()
    drift.add_argument("--skip-modified", dest="skipModified", action="store_true", help="Leave locally modified files alone")
    drift.add_argument("--force", action="store_true", help="Overwrite locally modified files")
    update.add_argument("--yes", "-y", action="store_true", help="Skip confirmations")
    update.add_argument("--global", "-g", dest="isGlobal", action="store_true", help="Update global packages")
    update.add_argument("--experimental", action="store_true", help="Also list new experimental entries")

    # remove
    remove = sub.add_parser("remove", help="Remove an installed package")
    remove.add_argument("package")
    remove.add_argument("--global", "-g", dest="isGlobal", action="store_true")
    remove.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")
    remove.add_argument("--keep-modified", dest="keepModified", action="store_true", help="Keep locally modified files on disk")

    # create
    create = sub.add_parser("create", help="Scaffold a new package")
    create.add_argument("--name", help="Package name (default: inferred from --target-dir, or asked)")
    create.add_argument("--description")
    create.add_argument("--author")
    create.add_argument("--license", default="MIT")
    create.add_argument("--homepage")
    create.add_argument("--repository", help="Git URL ending in .git (default: the target's origin remote)")
    create.add_argument("--tags", default="", help="Comma-separated tags")
    create.add_argument("--target-dir", dest="targetDir", help="Package directory (default: ./acp-NAME)")
    create.add_argument("--yes", "-y", action="store_true", help="Skip confirmation")

    # validate
    validate = sub.add_parser("validate", help="Validate the package in the current directory")
    validate.add_argument("--skip-remote", dest="skipRemote", action="store_true", help="Skip git remote checks")
    validate.add_argument("--skip-install", dest="skipInstall", action="store_true", help="Skip the test installation")

    # search
    search = sub.add_parser("search", help="Search GitHub for packages")
    search.add_argument("query", nargs="?", default="")
    search.add_argument("--tag")
    search.add_argument("--user")
    search.add_argument("--org")
    search.add_argument("--sort", choices=["stars", "forks", "updated", "help-wanted-issues"])
    search.add_argument("--limit", type=int)

    # list / info
    lst = sub.add_parser("list", help="List installed packages")
    lst.add_argument("--global", "-g", dest="isGlobal", action="store_true")
    info = sub.add_parser("info", help="Show details of an installed package")
    info.add_argument("package")
    info.add_argument("--global", "-g", dest="isGlobal", action="store_true")

    return parser



def _selections(args: argparse.Namespace) -> dict[Category, list[str]]:
    out: dict[Category, list[str]] = {}
    for category in (Category.PATTERNS, Category.COMMANDS, Category.DESIGNS, Category.FILES):
        names = getattr(args, category.value)
        if names is not None:
            out[category] = list(names)
    return out



def _run(args: argparse.Namespace) -> int:
    if args.command == "install":
        installPackage(InstallOptions(
            repo=args.repo,
            isGlobal=args.isGlobal,
            experimental=args.experimental,
            yes=args.yes,
            listOnly=args.listOnly,
            selections=_selections(args),
        ))
    elif args.command == "update":
        updatePackages(UpdateOptions(
            package=args.package,
            check=args.check,
            skipModified=args.skipModified,
            force=args.force,
            yes=args.yes,
            isGlobal=args.isGlobal,
            experimental=args.experimental,
        ))
    elif args.command == "remove":
        removePackage(RemoveOptions(
            package=args.package,
            isGlobal=args.isGlobal,
            yes=args.yes,
            keepModified=args.keepModified,
        ))
    elif args.command == "create":
        createPackage(CreateOptions(
            name=args.name,
            description=args.description,
            author=args.author,
            license=args.license,
            homepage=args.homepage,
            repository=args.repository,
            tags=[tag for tag in args.tags.split(",") if tag.strip()],
            targetDir=args.targetDir,
            yes=args.yes,
        ))
    elif args.command == "validate":
        report = validatePackage(skipRemote=args.skipRemote, skipInstall=args.skipInstall)
        return EXIT_OK if report.ok else EXIT_ERROR
    elif args.command == "search":
        searchPackages(SearchOptions(
            query=args.query,
            tag=args.tag,
            user=args.user,
            org=args.org,
            sort=args.sort,
            limit=args.limit,
        ))
    elif args.command == "list":
        listPackages(isGlobal=args.isGlobal)
    elif args.command == "info":
        packageDetails(args.package, isGlobal=args.isGlobal)
    else:
        raise ValueError(f"Unknown command '{args.command}'")
    return EXIT_OK



def main(argv: Sequence[str] | None = None) -> int:
    args = buildParser().parse_args(argv)
    try:
        setConfigService(ConfigService.load(userConfig=args.config))
        configureLogging(verbose=args.verbose)
        logger.debug("Running %s", args.command)
        return _run(args)
    except AcpError as err:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {err}", file=sys.stderr)
        return EXIT_ERROR
    except ValueError as err:
        print(f"Error: {err}", file=sys.stderr)
        return EXIT_ERROR
    finally:
        clearLogContext()



if __name__ == "__main__":
    sys.exit(main())
