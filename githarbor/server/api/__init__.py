"""
HTTP routes.

``health`` serves the status endpoints; ``projects`` holds the routes nested
under ``/{namespace_id}/{project_id}``.
"""
