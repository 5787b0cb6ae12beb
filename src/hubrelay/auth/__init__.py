"""Authentication for the two sides of the hub.

1. Producers → shared function key on POST /api/message
2. Subscribers → short-lived JWT from negotiate, presented on /client/
"""
