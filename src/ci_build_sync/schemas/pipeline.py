"""Pipeline value object and provider URL parsing."""

from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field

from .enums import PipelineType

GITHUB_HOSTS = frozenset({"github.com", "www.github.com", "api.github.com"})
GITHUB_API_URL = "https://api.github.com"


def parse_repo_url(url: str) -> tuple[str, str]:
    """
    Extract (owner, repo) from a provider repository URL.

    Accepts web URLs (https://github.com/acme/web), API URLs
    (https://api.github.com/repos/acme/web) and enterprise URLs. The
    owner and repository are always the last two path segments.

    Args:
        url: Repository URL

    Returns:
        Tuple of (owner, repo)

    Raises:
        ValueError: If the URL path has fewer than two segments
    """
    parts = [p for p in urlparse(url).path.split("/") if p]
    if len(parts) < 2:
        raise ValueError(f"Cannot determine owner/repo from URL: {url}")
    owner, repo = parts[-2], parts[-1]
    if repo.endswith(".git"):
        repo = repo[: -len(".git")]
    return owner, repo


def api_base_url(url: str) -> str:
    """Resolve the REST API base URL for a repository URL."""
    parsed = urlparse(url)
    host = (parsed.hostname or "").lower()
    if not host or host in GITHUB_HOSTS:
        return GITHUB_API_URL
    scheme = parsed.scheme or "https"
    netloc = parsed.netloc
    return f"{scheme}://{netloc}/api/v3"


class Pipeline(BaseModel):
    """A CI pipeline to synchronize.

    Immutable for the duration of a sync. Owned by configuration.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Stable pipeline identifier")
    name: str = Field(description="Display name")
    url: str = Field(description="Repository URL on the provider")
    type: PipelineType = Field(default=PipelineType.GITHUB_ACTIONS)
    credential: str = Field(default="", repr=False, description="Access token")
    branches: frozenset[str] = Field(
        default_factory=frozenset,
        description="Branches to attribute commits for (empty = all)",
    )

    @property
    def owner_and_repo(self) -> tuple[str, str]:
        """(owner, repo) parsed from the pipeline URL."""
        return parse_repo_url(self.url)

    @property
    def api_base_url(self) -> str:
        """REST API base URL for this pipeline's provider host."""
        return api_base_url(self.url)

    def tracks_branch(self, branch: str | None) -> bool:
        """Whether commits on a branch should be attributed."""
        if branch is None:
            return False
        return not self.branches or branch in self.branches
