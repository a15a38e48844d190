"""GitHub webhook receiver.

Usage
-----
Import the resource for route registration::

    from nickel_customs.api.webhooks.resources import WebhookResource
"""
