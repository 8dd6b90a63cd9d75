"""HTTP server for MediaForge.

Exposes the orchestration API as JSON endpoints plus a Server-Sent Events
stream of task updates.
"""

from mediaforge.server.app import create_app

__all__ = ["create_app"]
