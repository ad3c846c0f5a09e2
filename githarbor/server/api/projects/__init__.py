"""Routes nested under ``/{namespace_id}/{project_id}``."""
