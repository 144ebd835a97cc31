"""
GitHub domain models.
Only the fields the contributors listing and opt-out scan actually read are modelled;
extra fields in API payloads are ignored.
"""

from pydantic import BaseModel, ConfigDict


class Contributor(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: int
    login: str
    avatar_url: str = ""
    html_url: str = ""
    contributions: int = 0
    type: str = "User"


class ContributorWithFirstCommit(Contributor):
    first_commit_date: str | None = None


class ContributorDisplayData(BaseModel):
    login: str
    name: str | None = None
    avatar_url: str
    html_url: str
    contributions: int
    first_commit_date: str | None = None
    is_owner: bool


class RateLimitInfo(BaseModel):
    model_config = ConfigDict(extra="ignore")

    limit: int
    remaining: int
    reset: int
    used: int = 0


class IssueAuthor(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: str


class IssueLabel(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str


class Issue(BaseModel):
    """Issue as returned by the search API."""

    model_config = ConfigDict(extra="ignore")

    id: int
    number: int | None = None
    title: str
    body: str | None = None
    user: IssueAuthor | None = None
    labels: list[IssueLabel] = []

    @property
    def author_login(self) -> str | None:
        return self.user.login if self.user else None

    def label_names(self) -> list[str]:
        return [label.name for label in self.labels]
