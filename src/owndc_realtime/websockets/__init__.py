"""
WebSocket transport for the OwnDc realtime server.

Adapts ``websockets`` connections to the transport-agnostic
:class:`~owndc_realtime.core.session.Connection` interface and feeds decoded
frames to the event router.
"""
