from .message.protocol import Event, EventType

__all__ = ['Event', 'EventType']
