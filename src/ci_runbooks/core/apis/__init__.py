"""
API client modules for the CI/CD platforms the runbooks automate.

- BuildKite (REST v2)
- TeamCity (REST under /app/rest)
"""

from .buildkite_client import BuildkiteClient, BUILDKITE_API
from .teamcity_client import TeamCityClient

__all__ = [
    'BuildkiteClient',
    'BUILDKITE_API',
    'TeamCityClient',
]
