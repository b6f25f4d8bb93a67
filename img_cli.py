from __future__ import annotations

import argparse
import json
import logging
import sys

from img_index.api import (
    check_image,
    classify_scenes,
    describe_images,
    detect_faces,
    detect_objects,
    directories_add,
    directories_get,
    export_index,
    faces_root_get,
    faces_root_set,
    find_images,
    forget_face,
    index_path_get,
    index_path_set,
    known_faces,
    language_get,
    language_set,
    models,
    preferences,
    register_faces,
)
from img_index.config import IndexConfig
from img_index.query_builder import ImageQuery


def _session_flags(cmd: argparse.ArgumentParser, *, clear: bool = False) -> None:
    cmd.add_argument("--session-only", action="store_true", help="Only use the in-process session value")
    cmd.add_argument("--skip-session", action="store_true", help="Ignore the session value, use persistent storage")
    if clear:
        cmd.add_argument("--clear-session", action="store_true", help="Drop the session value")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Local image metadata index")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="-v for info, -vv for debug logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    export_cmd = sub.add_parser("export-index", help="Rebuild the image index database")
    export_cmd.add_argument("directories", nargs="*", help="Image directories (default: configured directories)")
    export_cmd.add_argument("--database", default="", help="Index database path")
    export_cmd.add_argument("--embed-images", action="store_true", help="Store a resized JPEG copy in the index")

    find_cmd = sub.add_parser("find", help="Search the image index")
    find_cmd.add_argument("any", nargs="*", help="Terms matched against any metadata field")
    find_cmd.add_argument("--description", action="append", default=[])
    find_cmd.add_argument("--keyword", action="append", default=[])
    find_cmd.add_argument("--person", action="append", default=[])
    find_cmd.add_argument("--object", action="append", default=[])
    find_cmd.add_argument("--scene", action="append", default=[])
    find_cmd.add_argument("--picture-type", action="append", default=[])
    find_cmd.add_argument("--style", action="append", default=[])
    find_cmd.add_argument("--mood", action="append", default=[])
    find_cmd.add_argument("--path", action="append", default=[], help="Path pattern, * and ? wildcards")
    find_cmd.add_argument("--camera-make", action="append", default=[])
    find_cmd.add_argument("--camera-model", action="append", default=[])
    find_cmd.add_argument("--has-nudity", action="store_true")
    find_cmd.add_argument("--no-nudity", action="store_true")
    find_cmd.add_argument("--has-explicit-content", action="store_true")
    find_cmd.add_argument("--no-explicit-content", action="store_true")
    find_cmd.add_argument("--taken-after", default=None, help="ISO date, e.g. 2023-06-01")
    find_cmd.add_argument("--taken-before", default=None)
    find_cmd.add_argument("--geo", nargs=2, type=float, metavar=("LAT", "LON"), default=None)
    find_cmd.add_argument("--geo-distance", type=float, default=1000.0, help="Radius in meters")
    find_cmd.add_argument("--min-scene-confidence", type=float, default=None)
    find_cmd.add_argument("-n", "--limit", type=int, default=0)
    find_cmd.add_argument("--database", default="")

    for name, help_text in (
        ("describe", "Write AI description sidecars"),
        ("faces", "Write recognized-face sidecars"),
        ("objects", "Write detected-object sidecars"),
        ("scenes", "Write scene classification sidecars"),
    ):
        cmd = sub.add_parser(name, help=help_text)
        cmd.add_argument("directories", nargs="*")
        cmd.add_argument("--force", action="store_true", help="Redo images that already have a sidecar")
        if name == "describe":
            cmd.add_argument("--language", default=None)

    reg_cmd = sub.add_parser("register-faces", help="Register <faces root>/<person>/ folders with the recognizer")
    reg_cmd.add_argument("--faces-root", default=None)
    sub.add_parser("list-faces", help="List faces registered with the recognizer")
    del_face = sub.add_parser("delete-face", help="Remove one registered face from the recognizer")
    del_face.add_argument("name")

    models_cmd = sub.add_parser("list-models", help="List models known to the LLM runtime")
    models_cmd.add_argument("--loaded", action="store_true", help="Only models currently loaded")

    check_cmd = sub.add_parser("check-image", help="Validate an image file path and extension")
    check_cmd.add_argument("path")

    set_index = sub.add_parser("set-index-path", help="Set the index database path")
    set_index.add_argument("path", nargs="?", default=None)
    _session_flags(set_index, clear=True)
    get_index = sub.add_parser("get-index-path", help="Show the index database path")
    _session_flags(get_index)

    add_dirs = sub.add_parser("add-dirs", help="Add image directories")
    add_dirs.add_argument("directories", nargs="+")
    _session_flags(add_dirs)
    get_dirs = sub.add_parser("get-dirs", help="Show configured image directories")
    _session_flags(get_dirs)

    set_lang = sub.add_parser("set-language", help="Set the language for AI-generated metadata")
    set_lang.add_argument("language", nargs="?", default=None)
    _session_flags(set_lang, clear=True)
    get_lang = sub.add_parser("get-language", help="Show the metadata language")
    _session_flags(get_lang)

    set_faces = sub.add_parser("set-faces-root", help="Set the known-faces root directory")
    set_faces.add_argument("path", nargs="?", default=None)
    _session_flags(set_faces, clear=True)
    get_faces = sub.add_parser("get-faces-root", help="Show the known-faces root directory")
    _session_flags(get_faces)

    sub.add_parser("preferences", help="Show all effective preferences")

    return parser.parse_args(argv)


def _query_from_args(args: argparse.Namespace) -> ImageQuery:
    return ImageQuery(
        any_terms=args.any,
        description_search=args.description,
        keywords=args.keyword,
        people=args.person,
        objects=args.object,
        scenes=args.scene,
        picture_types=args.picture_type,
        style_types=args.style,
        moods=args.mood,
        path_like=args.path,
        camera_make=args.camera_make,
        camera_model=args.camera_model,
        has_nudity=args.has_nudity,
        no_nudity=args.no_nudity,
        has_explicit_content=args.has_explicit_content,
        no_explicit_content=args.no_explicit_content,
        taken_after=args.taken_after,
        taken_before=args.taken_before,
        geo_location=tuple(args.geo) if args.geo else None,
        geo_distance_m=args.geo_distance,
        min_confidence=args.min_scene_confidence,
        limit=max(0, args.limit),
    )


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    level = logging.DEBUG if args.verbose > 1 else logging.INFO if args.verbose else logging.WARNING
    logging.basicConfig(stream=sys.stderr, level=level, format="%(levelname)s %(name)s: %(message)s")
    cfg = IndexConfig()

    flags = {}
    if hasattr(args, "session_only"):
        flags = {"session_only": args.session_only, "skip_session": args.skip_session}

    try:
        if args.cmd == "export-index":
            out = export_index(
                args.directories or None,
                database_path=args.database or None,
                embed_images=args.embed_images,
                cfg=cfg,
            )
        elif args.cmd == "find":
            out = find_images(_query_from_args(args), database_path=args.database or None, cfg=cfg)
        elif args.cmd == "describe":
            out = describe_images(args.directories or None, force=args.force, language=args.language, cfg=cfg)
        elif args.cmd == "faces":
            out = detect_faces(args.directories or None, force=args.force, cfg=cfg)
        elif args.cmd == "objects":
            out = detect_objects(args.directories or None, force=args.force, cfg=cfg)
        elif args.cmd == "scenes":
            out = classify_scenes(args.directories or None, force=args.force, cfg=cfg)
        elif args.cmd == "register-faces":
            out = register_faces(faces_root=args.faces_root, cfg=cfg)
        elif args.cmd == "list-faces":
            out = known_faces(cfg=cfg)
        elif args.cmd == "delete-face":
            out = forget_face(args.name, cfg=cfg)
        elif args.cmd == "list-models":
            out = models(loaded_only=args.loaded, cfg=cfg)
        elif args.cmd == "check-image":
            out = check_image(args.path, cfg=cfg)
        elif args.cmd == "set-index-path":
            out = index_path_set(args.path, clear_session=args.clear_session, cfg=cfg, **flags)
        elif args.cmd == "get-index-path":
            out = index_path_get(cfg=cfg, **flags)
        elif args.cmd == "add-dirs":
            out = directories_add(args.directories, cfg=cfg, **flags)
        elif args.cmd == "get-dirs":
            out = directories_get(cfg=cfg, **flags)
        elif args.cmd == "set-language":
            out = language_set(args.language, clear_session=args.clear_session, cfg=cfg, **flags)
        elif args.cmd == "get-language":
            out = language_get(cfg=cfg, **flags)
        elif args.cmd == "set-faces-root":
            out = faces_root_set(args.path, clear_session=args.clear_session, cfg=cfg, **flags)
        elif args.cmd == "get-faces-root":
            out = faces_root_get(cfg=cfg, **flags)
        elif args.cmd == "preferences":
            out = preferences(cfg)
        else:
            raise SystemExit(f"Unknown command: {args.cmd}")
    except (FileNotFoundError, ValueError) as exc:
        raise SystemExit(f"error: {exc}") from exc

    print(json.dumps(out, ensure_ascii=False, indent=2))


if __name__ == "__main__":
    main()
