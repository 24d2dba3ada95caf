"""Reference implementations of the collaborator interfaces.

WHY: PlaybackControls depends on a PlayerControl and a CacheStore it does
not own. The HTTP service and the test suite need concrete, in-process
versions of both.

RULES:
- Adapters hold no controls logic; they only model the collaborator
- Both are safe to construct with no arguments
"""

from cue_navigator.adapters.cache import InMemoryCacheStore
from cue_navigator.adapters.player import VirtualPlayer

__all__ = ["InMemoryCacheStore", "VirtualPlayer"]
