"""Cue Navigator: sentence navigation and loop practice over caption cues.

WHY: Caption tracks (especially auto-generated ones) arrive as noisy,
overlapping, cumulative cue frames. A learner wants to step sentence by
sentence, replay, and A/B-loop a phrase while a player keeps running. This
package turns the cue stream into navigable units and keeps navigation,
looping, and session state in step with an external playback cursor.

HOW: Three layers:
  core      pure cue grouping (segmenter, collapser) and target
              resolution (navigation ladder)
  controls  stateful practice controls over a PlayerControl and a
              CacheStore (loop markers, session persistence, events)
  server    optional FastAPI practice-session service over a virtual player

RULES:
- Core modules never touch the player; they return times only
- Controls never raise to the caller; failures become results and notices
- Player and cache are injected collaborators, never singletons
"""

__version__ = "0.1.0"
