"""nickel-customs HTTP API layer.

This package provides the Falcon Asynchronous Server Gateway Interface
(ASGI) application receiving GitHub webhooks.

Usage
-----
Create the application::

    from nickel_customs.api import create_app

    app = create_app()              # health-only mode
    app = create_app(dependencies)  # webhook receiver
"""

from nickel_customs.api.app import AppDependencies, create_app

__all__ = ["AppDependencies", "create_app"]
