# models/api/contributors_response.py
"""
Contributors listing response.
"""

from pydantic import BaseModel, Field

from styleguides_site.models.domain.github_domain import ContributorDisplayData


class ContributorsResponse(BaseModel):
    contributors: list[ContributorDisplayData] = Field(default_factory=list)
    total: int = Field(..., description="Visible contributors before the limit is applied")
    repository: str = Field(..., description="owner/repo the list was read from")
