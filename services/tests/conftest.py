"""
Top-level test configuration for Rolegraph.
"""

import os

# Ensure test-friendly defaults
os.environ.setdefault("ROLEGRAPH_PERSISTENCE__BACKEND", "memory")
os.environ.setdefault("ROLEGRAPH_JSON_LOGS", "false")
os.environ.setdefault("ROLEGRAPH_LOG_LEVEL", "DEBUG")
