"""Command-line interface for inspecting caption tracks and serving the API.

WHY: Tuning the grouping and navigation thresholds means looking at what
they do to a real track. The CLI loads a caption file and prints the
detected sentences, the collapsed cue groups, or one navigation target,
and it starts the practice-session API.

HOW: argparse with four subcommands:
  sentences FILE           sentence groups with times and text
  groups FILE              collapsed plateaus (treats the track as auto-generated)
  navigate FILE --at T     resolve previous/next/replay from position T
  serve                    run the FastAPI app under uvicorn
Results go to stdout (plain lines, or JSON with --json); errors go to
stderr with exit status 1.

RULES:
- Caption files are JSON: a list of cues, or {"cues": [...],
  "is_auto_generated": bool}; cue keys may be snake_case or camelCase
- Thresholds come from the environment (CUENAV_*, .env)
- argv=None reads sys.argv; an explicit list is for tests
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from cue_navigator.config import Thresholds
from cue_navigator.core.collapser import collapse_cues
from cue_navigator.core.ir import Cue, SubtitleTrack
from cue_navigator.core.navigation import NavigationResolver
from cue_navigator.core.segmenter import SentenceSegmenter


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


def load_track(path: Path) -> SubtitleTrack:
    """Read a caption JSON file into a SubtitleTrack.

    Raises:
        ValueError: If the file is not valid JSON or has no cue list,
            or a cue entry is not an object.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid JSON in {}: {}".format(path, exc))

    if isinstance(data, list):
        return SubtitleTrack(cues=_parse_cues(data, path))
    if isinstance(data, dict) and isinstance(data.get("cues"), list):
        return SubtitleTrack(
            cues=_parse_cues(data["cues"], path),
            is_auto_generated=bool(data.get("is_auto_generated", data.get("isAutoGenerated", False))),
            language=str(data.get("language", "")),
            label=str(data.get("label", "")),
        )
    raise ValueError("{} must hold a cue list or an object with a 'cues' list".format(path))


def _parse_cues(entries: List[Any], path: Path) -> List[Cue]:
    for position, entry in enumerate(entries):
        if not isinstance(entry, dict):
            raise ValueError("{}: cue {} is not an object".format(path, position))
    return [Cue.from_dict(entry) for entry in entries]


def _emit(rows: List[Dict[str, Any]], as_json: bool, fmt: str) -> None:
    if as_json:
        print(json.dumps(rows, indent=2, ensure_ascii=False))
        return
    for row in rows:
        print(fmt.format(**row))


def _cmd_sentences(args: argparse.Namespace, thresholds: Thresholds) -> None:
    track = _load_or_fail(args.file)
    segmenter = SentenceSegmenter(track.cues, thresholds=thresholds)
    rows = [
        {"index": i, "start": s.start_time, "end": s.end_time, "text": s.combined_text}
        for i, s in enumerate(segmenter.get_available_sentences())
    ]
    _emit(rows, args.json, "{index:>4}  {start:8.2f} - {end:8.2f}  {text}")


def _cmd_groups(args: argparse.Namespace, thresholds: Thresholds) -> None:
    track = _load_or_fail(args.file)
    groups = collapse_cues(track.cues, gap_s=thresholds.group_gap_s, min_group_s=thresholds.min_group_s)
    rows = [{"start": g.start, "end": g.end, "text": g.text} for g in groups]
    _emit(rows, args.json, "{start:8.2f} - {end:8.2f}  {text}")


def _cmd_navigate(args: argparse.Namespace, thresholds: Thresholds) -> None:
    track = _load_or_fail(args.file)
    segmenter = SentenceSegmenter(track.cues, thresholds=thresholds)
    resolver = NavigationResolver(segmenter, thresholds=thresholds)
    if track.is_auto_generated:
        resolver.set_groups(collapse_cues(track.cues, thresholds.group_gap_s, thresholds.min_group_s))

    result = resolver.resolve(args.direction, args.at, args.duration)
    row = {
        "direction": result.direction.value,
        "from": result.from_time,
        "to": result.to_time,
        "source": result.source.value,
        "text": result.matched_text or "",
    }
    _emit([row], args.json, "{direction} {from:.2f} -> {to:.2f} via {source}  {text}")


def _cmd_serve(args: argparse.Namespace, thresholds: Thresholds) -> None:
    from cue_navigator.server.app import run_api
    run_api(host=args.host, port=args.port)


def _load_or_fail(file_arg: str) -> SubtitleTrack:
    path = Path(file_arg).resolve()
    if not path.is_file():
        _fail("File not found: {}".format(path))
    try:
        return load_track(path)
    except (ValueError, TypeError) as exc:
        _fail(str(exc))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cue-navigator",
        description="Inspect caption tracks (sentences, collapsed groups, navigation "
                    "targets) and serve the practice-session API.",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for diagnostics on stderr (default: %(default)s).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sentences = sub.add_parser("sentences", help="Print the sentences detected in a caption file.")
    sentences.add_argument("file", help="Caption JSON file.")
    sentences.add_argument("--json", action="store_true", help="Print JSON instead of plain lines.")
    sentences.set_defaults(handler=_cmd_sentences)

    groups = sub.add_parser("groups", help="Print collapsed cue groups for an auto-generated track.")
    groups.add_argument("file", help="Caption JSON file.")
    groups.add_argument("--json", action="store_true", help="Print JSON instead of plain lines.")
    groups.set_defaults(handler=_cmd_groups)

    navigate = sub.add_parser("navigate", help="Resolve one navigation target.")
    navigate.add_argument("file", help="Caption JSON file.")
    navigate.add_argument("--at", type=float, required=True, help="Current position in seconds.")
    navigate.add_argument(
        "--direction",
        default="next",
        choices=["previous", "next", "replay"],
        help="Navigation direction (default: %(default)s).",
    )
    navigate.add_argument(
        "--duration",
        type=float,
        default=0.0,
        help="Video duration in seconds; 0 means unknown (default: %(default)s).",
    )
    navigate.add_argument("--json", action="store_true", help="Print JSON instead of a plain line.")
    navigate.set_defaults(handler=_cmd_navigate)

    serve = sub.add_parser("serve", help="Run the practice-session HTTP API.")
    serve.add_argument("--host", default="0.0.0.0", help="Bind address (default: %(default)s).")
    serve.add_argument("--port", type=int, default=8000, help="Port (default: %(default)s).")
    serve.set_defaults(handler=_cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for ``python -m cue_navigator`` and the cue-navigator script."""
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    args.handler(args, Thresholds.from_env())


if __name__ == "__main__":
    main()
