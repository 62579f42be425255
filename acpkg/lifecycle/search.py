# acpkg/lifecycle/search.py
from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import Any

from acpkg.app.globals import config, configInt
from acpkg.content.descriptor import DESCRIPTOR_NAME
from acpkg.core.document import Document
from acpkg.core.errors import AcpError, NetworkError
from acpkg.core.logging import setLogContext
from acpkg.http.client import request
from acpkg.lifecycle.prompts import Reporter

logger = logging.getLogger(__name__)

__all__ = ["SearchOptions", "SearchHit", "SearchResult", "buildQuery", "searchPackages"]

UNKNOWN_VERSION = "unknown"



@dataclass
class SearchOptions:
    query: str = ""
    tag: str | None = None
    user: str | None = None
    org: str | None = None
    sort: str | None = None
    limit: int | None = None



@dataclass(frozen=True)
class SearchHit:
    fullName: str
    name: str
    version: str
    description: str
    stars: int
    url: str
    tags: tuple[str, ...] = ()

    @property
    def installUrl(self) -> str:
        return f"{self.url}.git"



@dataclass
class SearchResult:
    query: str
    total: int = 0
    hits: list[SearchHit] = field(default_factory=list)



def buildQuery(options: SearchOptions) -> str:
    """
    Free text plus GitHub qualifiers; the package topic is always present.
    `"demo" + tag "db"` → "demo topic:acp-package topic:db"
    """
    topic = str(config("search.topic", "acp-package"))
    parts = [options.query.strip()] if options.query and options.query.strip() else []
    parts.append(f"topic:{topic}")
    if options.tag:
        parts.append(f"topic:{options.tag}")
    if options.user:
        parts.append(f"user:{options.user}")
    if options.org:
        parts.append(f"org:{options.org}")
    return " ".join(parts)



def _headers() -> dict[str, str]:
    headers = {"Accept": "application/vnd.github+json"}
    token = config("search.token")
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return headers



def _descriptorFields(fullName: str) -> tuple[str | None, str, tuple[str, ...]]:
    """(name, version, tags) from the repository's package.yaml on the default branch."""
    rawUrl = str(config("search.rawUrl", "https://raw.githubusercontent.com")).rstrip("/")
    branch = str(config("search.branch", "main"))
    url = f"{rawUrl}/{fullName}/{branch}/{DESCRIPTOR_NAME}"
    try:
        resp = request("GET", url, retries=0)
    except NetworkError as err:
        logger.debug("Cannot fetch %s: %s", url, err)
        return None, UNKNOWN_VERSION, ()
    if resp["status"] != 200 or not resp["text"].strip():
        return None, UNKNOWN_VERSION, ()
    try:
        doc = Document.parse(resp["text"], source=url)
    except AcpError as err:
        logger.debug("Unreadable %s: %s", url, err)
        return None, UNKNOWN_VERSION, ()
    name = doc.get("name")
    version = doc.get("version")
    tags = doc.toData("tags") if doc.has("tags") else []
    return (
        name if isinstance(name, str) and name else None,
        version if isinstance(version, str) and version else UNKNOWN_VERSION,
        tuple(str(tag) for tag in tags) if isinstance(tags, list) else (),
    )



def _toHit(item: dict[str, Any]) -> SearchHit:
    fullName = str(item.get("full_name", ""))
    name, version, tags = _descriptorFields(fullName)
    return SearchHit(
        fullName=fullName,
        name=name or fullName.rpartition("/")[2],
        version=version,
        description=str(item.get("description") or ""),
        stars=int(item.get("stargazers_count") or 0),
        url=str(item.get("html_url") or f"https://github.com/{fullName}"),
        tags=tags,
    )



def searchPackages(options: SearchOptions, *, reporter: Reporter | None = None) -> SearchResult:
    """
    Queries the GitHub repository search for packages.
    An API error message (rate limit, bad query) raises NetworkError.
    """
    reporter = reporter or Reporter()
    setLogContext(command="search")
    query = buildQuery(options)
    sort = options.sort or str(config("search.sort", "stars"))
    limit = options.limit if options.limit is not None else configInt("search.limit", 10)
    if limit < 1:
        raise ValueError("--limit must be a positive number")

    reporter.info(f"Searching GitHub for: {query}")
    resp = request(
        "GET",
        str(config("search.apiUrl", "https://api.github.com/search/repositories")),
        headers=_headers(),
        params={"q": query, "sort": sort, "per_page": limit},
    )
    payload = resp.get("json")
    if not isinstance(payload, dict):
        raise NetworkError(f"GitHub API returned an unexpected response (HTTP {resp['status']})")
    if "message" in payload:
        raise NetworkError(f"GitHub API error: {payload['message']}")

    result = SearchResult(query=query, total=int(payload.get("total_count") or 0))
    for item in (payload.get("items") or [])[:limit]:
        if isinstance(item, dict):
            result.hits.append(_toHit(item))

    if not result.hits:
        reporter.info("No packages found matching your search")
        return result
    reporter.success(f"Found {result.total} package(s)")
    for index, hit in enumerate(result.hits, start=1):
        reporter.info(f"{index}. {hit.name} ({hit.version}) ★ {hit.stars}")
        reporter.info(f"   {hit.url}")
        if hit.description:
            reporter.info(f"   {hit.description}")
        if hit.tags:
            reporter.info(f"   Tags: {', '.join(hit.tags)}")
        reporter.info(f"   Install: acp install --repo {hit.installUrl}")
    reporter.info(f"Showing {len(result.hits)} of {result.total} result(s)")
    return result
