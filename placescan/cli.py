from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any, List, Optional

from .config import resolve_config
from .errors import ScanError
from .hasher import compute_tree_hash
from .models import GameQuery
from .outline import generate_outline
from .query import summarize_manifest
from .service import ScannerService

# Offline inspection of a storage directory; the server does not need to run.


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}")
    if number < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {number}")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="placescan", description="Inspect stored place scans")
    parser.add_argument("--storage", default=None, help="Storage directory (default: PLACESCAN_STORAGE_DIR or ./storage)")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("games", help="List scanned places, newest first")

    show = sub.add_parser("show", help="Print a place manifest")
    show.add_argument("place_id", type=_non_negative_int)

    scope = sub.add_parser("scope", help="Print one scope of a place")
    scope.add_argument("place_id", type=_non_negative_int)
    scope.add_argument("scope")
    scope.add_argument("--path", default=None, help="Case-insensitive path prefix")
    scope.add_argument("--search", default=None, help="Case-insensitive substring")
    scope.add_argument("--class", dest="class_name", default=None, help="Exact class name")
    scope.add_argument("--include-source", action="store_true", help="Scripts: return full sources")
    scope.add_argument("--max-depth", type=_non_negative_int, default=None, help="Tree: prune children below this depth")

    delete = sub.add_parser("delete", help="Delete all stored data for a place")
    delete.add_argument("place_id", type=_non_negative_int)

    outline = sub.add_parser("outline", help="Outline a local Luau file")
    outline.add_argument("file")

    tree_hash = sub.add_parser("hash", help="Hash a tree JSON file")
    tree_hash.add_argument("file")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    if args.command in ("outline", "hash"):
        try:
            text = Path(args.file).read_text(encoding="utf-8", errors="replace")
            if args.command == "outline":
                _print_json(generate_outline(text).model_dump())
            else:
                print(compute_tree_hash(json.loads(text)))
        except OSError as exc:
            print(f"Error: cannot read {args.file}: {exc.strerror or exc}", file=sys.stderr)
            return 1
        except ValueError as exc:
            print(f"Error: {args.file} is not valid JSON: {exc}", file=sys.stderr)
            return 1
        return 0

    config = resolve_config()
    if args.storage:
        config.storage_dir = Path(args.storage)
    svc = ScannerService.from_config(config)

    try:
        if args.command == "games":
            _print_json([summarize_manifest(m) for m in svc.list_manifests()])
        elif args.command == "show":
            manifest = svc.get_manifest(args.place_id)
            _print_json({"manifest": manifest.model_dump(mode="json"), "scopes": svc.list_scopes(args.place_id)})
        elif args.command == "scope":
            query = GameQuery(
                path=args.path,
                search=args.search,
                class_name=args.class_name,
                include_source=args.include_source,
                max_depth=args.max_depth,
            )
            _print_json(svc.get_scope(args.place_id, args.scope, query))
        elif args.command == "delete":
            removed = svc.delete_target(args.place_id)
            print(f"Deleted place {args.place_id}" if removed else f"Nothing stored for place {args.place_id}")
    except ScanError as exc:
        print(f"Error: {exc.message}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
