"""
ASGI config for the ward project.

Wires both HTTP (Django) and WebSocket (Channels).
Django must be configured before any Django-dependent module is imported.
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "ward.settings")

import django  # noqa: E402
django.setup()  # noqa: E402

from django.core.asgi import get_asgi_application  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from channels.auth import AuthMiddlewareStack  # noqa: E402
from django.urls import path  # noqa: E402

from ipd.realtime.consumers import BedBoardConsumer  # noqa: E402

django_asgi_app = get_asgi_application()

websocket_urlpatterns = [
    path("ws/beds/", BedBoardConsumer.as_asgi()),
]

application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": AuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
})
