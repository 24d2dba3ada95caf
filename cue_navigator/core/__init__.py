"""Core cue grouping and navigation modules.

WHY: The core package holds the pure logic: turning a cue list into
sentences and plateaus, and resolving a navigation target from the
current time. Nothing here talks to a player or a cache, so every rule
is testable with plain data.

HOW: ir.py defines the data structures, segmenter.py groups cues into
sentences, collapser.py collapses auto-generated cue frames, and
navigation.py walks the fallback ladder over both.

RULES:
- IR dataclasses are the contract between core and controls
- Core functions are deterministic for a fixed cue list
- Navigation returns times only; seeking is the caller's job
"""
