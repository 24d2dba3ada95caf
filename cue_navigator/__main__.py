"""Package entry point for ``python -m cue_navigator``.

HOW: Delegates to cli.main(); ``python -m cue_navigator serve`` starts
the practice-session API.
"""

if __name__ == "__main__":
    from cue_navigator.cli import main
    main()
