"""
Git URL helpers.
"""

import re
from urllib.parse import urlsplit, urlunsplit

_SCP_LIKE = re.compile(r"^[\w.-]+@[\w.-]+:")


def is_ssh_url(url: str) -> bool:
    """Check if url is an SSH repository URL (scp-like or ssh://)."""
    return url.startswith("ssh://") or bool(_SCP_LIKE.match(url))


def normalize_git_url(url: str) -> str:
    """
    Normalize a repository URL so equivalent URLs compare equal.

    Lower-cases the URL, strips HTTP(S) credentials, a trailing slash and
    the ``.git`` suffix. SSH URLs keep their user.

    Returns:
        Normalized URL, or "" if it can't be parsed
    """
    repo = url.strip().lower()
    if not repo:
        return ""

    ssh = is_ssh_url(repo)
    scp_like = ssh and not repo.startswith("ssh://")
    if scp_like:
        # scp-like git@host:org/repo
        user_host, _, path = repo.partition(":")
        repo = f"ssh://{user_host}/{path}"

    repo = repo.rstrip("/")
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]

    try:
        parts = urlsplit(repo)
        netloc = parts.netloc
        if not ssh and "@" in netloc:
            netloc = netloc.rsplit("@", 1)[1]
        normalized = urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
    except ValueError:
        return ""

    if ssh:
        normalized = normalized[len("ssh://"):]
    if scp_like:
        normalized = normalized.replace("/", ":", 1)
    return normalized
