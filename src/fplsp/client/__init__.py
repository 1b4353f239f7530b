"""Completion client: framing, correlation, trigger/caching engine."""
from .completion import CompletionController, CompletionResult, CompletionTriggerEngine
from .editor import EditorClient
from .session import RpcSession

__all__ = [
    'CompletionController',
    'CompletionResult',
    'CompletionTriggerEngine',
    'EditorClient',
    'RpcSession',
]
