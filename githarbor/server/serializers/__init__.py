"""
JSON entities for the HTTP responses.

Entities pick the exposed attributes off a domain object and may read the
current request, e.g. to build absolute URLs.
"""

from .merge_request_entity import MergeRequestEntity
from .pipeline_entity import PipelineEntity
from .request_aware import RequestAwareEntity
from .status_entity import StatusEntity

__all__ = ["MergeRequestEntity", "PipelineEntity", "RequestAwareEntity", "StatusEntity"]
