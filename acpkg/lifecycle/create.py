# acpkg/lifecycle/create.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from pathlib import Path

from acpkg.content.descriptor import DESCRIPTOR_NAME, Category, validateDescriptor
from acpkg.content.namespace import inferNamespace, validateNamespace
from acpkg.core.document import Document
from acpkg.core.errors import ConflictError, ValidationError
from acpkg.core.git import remoteUrl
from acpkg.core.logging import setLogContext
from acpkg.lifecycle.fetch import BUNDLE_AGENT_DIR
from acpkg.lifecycle.prompts import Prompter, Reporter
from acpkg.lifecycle.validate import README_NAME

logger = logging.getLogger(__name__)

__all__ = ["INITIAL_VERSION", "CreateOptions", "CreateResult", "createPackage"]

INITIAL_VERSION = "1.0.0"
CHANGELOG_NAME = "CHANGELOG.md"



@dataclass
class CreateOptions:
    name: str | None = None
    description: str | None = None
    author: str | None = None
    license: str = "MIT"
    homepage: str | None = None
    repository: str | None = None
    tags: list[str] = field(default_factory=list)
    targetDir: str | None = None
    yes: bool = False



@dataclass
class CreateResult:
    name: str
    path: Path
    written: list[Path] = field(default_factory=list)



def _resolveName(options: CreateOptions, prompter: Prompter) -> str:
    """--name, else the namespace the target directory implies, else ask."""
    if options.name:
        name = options.name.strip()
    else:
        inferred = inferNamespace(options.targetDir) if options.targetDir else None
        name = prompter.ask("Package name (lowercase, no spaces)", default=inferred or "")
    validateNamespace(name)
    return name



def _repository(options: CreateOptions, target: Path, prompter: Prompter) -> str:
    url = options.repository or prompter.ask("Repository URL", default=remoteUrl(target) or "")
    url = url.strip()
    if url and not url.endswith(".git"):
        url += ".git"
    return url



def _descriptorDoc(name: str, options: CreateOptions, description: str, author: str, repository: str) -> Document:
    doc = Document()
    doc.set("name", name)
    doc.set("version", INITIAL_VERSION)
    doc.set("description", description)
    doc.set("author", author)
    doc.set("license", options.license or "MIT")
    if options.homepage:
        doc.set("homepage", options.homepage)
    doc.set("repository", repository)
    doc.set("tags", "[]")
    for tag in options.tags:
        if tag.strip():
            doc.appendScalar("tags", tag.strip())
    for category in Category:
        doc.set(f"contents.{category.value}", "[]")
    return doc



def _readme(name: str, description: str, repository: str, license: str) -> str:
    return (
        f"# ACP Package: {name}\n\n"
        f"{description}\n\n"
        "## Installation\n\n"
        f"```bash\nacp install --repo {repository}\n```\n\n"
        "## What's Included\n\n"
        "### Commands\n\n(No commands yet)\n\n"
        "### Patterns\n\n(No patterns yet)\n\n"
        "### Designs\n\n(No designs yet)\n\n"
        "## Namespace Convention\n\n"
        f"Every command, pattern and design in this package is named `{name}.<item>`.\n\n"
        "## License\n\n"
        f"{license}\n"
    )



def createPackage(
    options: CreateOptions,
    *,
    reporter: Reporter | None = None,
    prompter: Prompter | None = None,
    baseDir: Path | str | None = None,
) -> CreateResult:
    """
    Scaffolds a new package: package.yaml, README.md, CHANGELOG.md and
    empty agent/ content directories (files/ is left to the author).

    The target defaults to `<baseDir>/acp-<name>`. An existing directory is
    fine as long as it holds no package.yaml yet; nothing is written until
    the generated descriptor validates.
    """
    reporter = reporter or Reporter()
    prompter = prompter or Prompter(autoYes=options.yes)
    setLogContext(command="create")

    name = _resolveName(options, prompter)
    setLogContext(package=name)
    base = Path(baseDir or Path.cwd())
    target = Path(options.targetDir).expanduser() if options.targetDir else base / f"acp-{name}"
    target = target.resolve()
    if (target / DESCRIPTOR_NAME).exists():
        raise ConflictError(f"{target} already contains {DESCRIPTOR_NAME}")

    description = (options.description or prompter.ask("Description")).strip()
    author = (options.author or prompter.ask("Author name")).strip()
    repository = _repository(options, target, prompter)
    doc = _descriptorDoc(name, options, description, author, repository)
    violations = validateDescriptor(doc)
    if violations:
        raise ValidationError(violations, subject=DESCRIPTOR_NAME)

    reporter.info(f"Package: {name} ({INITIAL_VERSION})")
    reporter.info(f"Target: {target}")
    if not prompter.confirm("Create package?", default=True):
        reporter.info("Creation cancelled.")
        return CreateResult(name=name, path=target)

    result = CreateResult(name=name, path=target)
    for category in (Category.PATTERNS, Category.COMMANDS, Category.DESIGNS, Category.SCRIPTS):
        keep = target / BUNDLE_AGENT_DIR / category.bundleDir / ".gitkeep"
        keep.parent.mkdir(parents=True, exist_ok=True)
        keep.touch()
        result.written.append(keep)
    files = {
        DESCRIPTOR_NAME: doc.serialize(),
        README_NAME: _readme(name, description, repository, options.license or "MIT"),
        CHANGELOG_NAME: f"# Changelog\n\n## [{INITIAL_VERSION}]\n\n- Initial release\n",
    }
    for rel, text in files.items():
        path = target / rel
        path.write_text(text, encoding="utf-8")
        result.written.append(path)
        reporter.item(f"Created {rel}", marker="✓")
    logger.debug("Scaffolded %s in %s", name, target)

    reporter.success(f"Created package {name} in {target}")
    reporter.info("Next: add content under agent/ and list it in package.yaml, then run `acp validate`")
    return result
