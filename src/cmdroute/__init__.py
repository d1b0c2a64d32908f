"""cmdroute - pattern-routed command dispatch."""

from cmdroute._version import __version__
from cmdroute.actors import Actor, ActorKind, ConsoleActor, LocalUser

__all__ = ["Actor", "ActorKind", "ConsoleActor", "LocalUser", "__version__"]
