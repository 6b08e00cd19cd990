"""UDP fetch relay

A requester names a web server and a time budget; a responder fetches the
content, splits it into fixed-size datagrams and waits for one ack:
- wire codec (packet) kept apart from the session/dispatch state machines
- timeouts are values, retries are a bounded loop
- every port and size comes from an injected ProtocolConfig
"""

__all__ = []
