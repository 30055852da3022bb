"""Webhook trigger for ``podman auto-update``.

A small HTTP service that runs the host's container auto-update command when
an authenticated request arrives and relays the command's output back to the
caller.
"""

__version__ = "0.1.0"
