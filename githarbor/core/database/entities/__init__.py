"""
Database entity models.

Importing this package registers every table on ``Base.metadata``.
"""

from .merge_requests import MergeRequest
from .pipelines import Pipeline
from .projects import Project, ProjectMember
from .users import Namespace, User

__all__ = [
    "MergeRequest",
    "Namespace",
    "Pipeline",
    "Project",
    "ProjectMember",
    "User",
]
