"""hubrelay — negotiate + broadcast relay for a real-time messaging hub.

Clients call /api/negotiate for a hub URL and access token, then hold a
WebSocket open on /client/. Producers POST raw text to /api/message and
every subscriber of the hub receives it.
"""

__version__ = "0.1.0"
