"""Core building blocks shared by the server, git layer and workers."""
