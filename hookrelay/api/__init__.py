"""HTTP surface shared by the plain and TLS listeners.

Public API
----------
create_app
    Builds the Falcon ASGI app serving the callback path, ``/metrics`` and
    a catch-all 404.
AppDependencies
    The dispatcher, callback identity and metrics wiring the app needs.
"""

from hookrelay.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
