"""
Data access layer organized by table.
"""

from .base import AsyncBaseRepository, QueryBuilder
from .merge_requests import MergeRequestRepository
from .pipelines import PipelineRepository
from .projects import ProjectRepository
from .users import NamespaceRepository, UserRepository

__all__ = [
    "AsyncBaseRepository",
    "MergeRequestRepository",
    "NamespaceRepository",
    "PipelineRepository",
    "ProjectRepository",
    "QueryBuilder",
    "UserRepository",
]
