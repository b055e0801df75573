"""Definition-driven slash commands: decoding, interpretation and dispatch."""

from .decoding import decode_blocks, decode_definition
from .dispatcher import DispatchOutcome, DispatchStatus, InvocationDispatcher
from .interpreter import BlockInterpreter, Decision, evaluate
from .layout import layout_components
from .models import CommandDefinition, InvocationContext
from .registry import HandlerRegistry, InstalledCommand, RegistryHolder
from .responder import BaseResponder, ReplyPayload, Responder
from .synchronizer import DefinitionSynchronizer, PeriodicResync, SyncReport

__all__ = [
    "BaseResponder",
    "BlockInterpreter",
    "CommandDefinition",
    "Decision",
    "DefinitionSynchronizer",
    "DispatchOutcome",
    "DispatchStatus",
    "HandlerRegistry",
    "InstalledCommand",
    "InvocationContext",
    "InvocationDispatcher",
    "PeriodicResync",
    "RegistryHolder",
    "ReplyPayload",
    "Responder",
    "SyncReport",
    "decode_blocks",
    "decode_definition",
    "evaluate",
    "layout_components",
]
