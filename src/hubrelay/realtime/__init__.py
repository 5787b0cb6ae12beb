"""Real-time infrastructure — broker pub/sub + WebSocket hub.

Learn: Messages flow through two hops:
1. POST /api/message → provider → broker PUBLISH on the hub channel
2. broker SUBSCRIBE → /client/ WebSocket → every connected subscriber

This decouples producers (any HTTP caller) from subscribers (browsers).
"""
