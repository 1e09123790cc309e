# cli.py

import argparse
import json
import logging
import sys
from pathlib import Path

from picture_pruner.components.selection_manager import SelectionManager, pick_group_photo
from picture_pruner.config import SystemConfig
from picture_pruner.core.content_hash import hash_content
from picture_pruner.core.database import PhotoDatabase
from picture_pruner.core.duplicate_detection import DuplicateGroupBuilder
from picture_pruner.core.exceptions import InvalidInput, UnsupportedImage
from picture_pruner.core.models import PHOTO_STATUSES
from picture_pruner.core.perceptual_hash import compute_fingerprint, hamming_distance
from picture_pruner.core.photo_scanner import (
    PhotoScanner, collection_id_for, collection_id_for_name
)
from picture_pruner.core.sync_diff import diff_collection
from picture_pruner.utils.logging_config import log_operation, setup_logging
from picture_pruner.utils.report_generator import GroupReportGenerator

logger = logging.getLogger("picture_pruner.cli")


def _open_database(args, config: SystemConfig) -> PhotoDatabase:
    return PhotoDatabase(args.db or config.database_path)


def _resolve_root(directory) -> str:
    return str(Path(directory).expanduser().resolve())


def _collection_id(args, database: PhotoDatabase) -> str:
    """Named collection when --collection is given, else the one last synced from the folder"""
    if args.collection:
        return collection_id_for_name(args.collection)
    known = database.find_collection_by_root(_resolve_root(args.directory))
    return known or collection_id_for(args.directory)


def _load_photos(database: PhotoDatabase, args):
    collection_id = _collection_id(args, database)
    photos = database.get_photos(collection_id)
    if not photos:
        print(f"No photos recorded for {args.directory}. Run 'sync' first.")
    return collection_id, photos


def _write_report(args, groups, photos):
    if not getattr(args, 'report', None):
        return
    photos_by_id = {p.id: p for p in photos}
    GroupReportGenerator().generate_report(groups, photos_by_id, args.report)
    print(f"Report saved to: {args.report}")


def sync_command(args, config: SystemConfig):
    """Scan a directory and reconcile it with the database"""
    print(f"Scanning: {args.directory}")
    database = _open_database(args, config)
    try:
        collection_id = _collection_id(args, database)
        scan = PhotoScanner(config).scan(args.directory, collection_id)
        diff = diff_collection(scan.photos, database.get_sync_records(collection_id))
        result = database.apply_sync_diff(collection_id, diff)
        database.upsert_collection(collection_id, _resolve_root(args.directory),
                                   name=args.collection)
    finally:
        database.close()

    print(f"Added {result.added}, removed {result.removed}, "
          f"restored {result.restored}, total {result.total}")
    if result.relocated:
        print(f"Updated paths of {result.relocated} moved photos")
    if scan.missing_file_count or scan.unsupported_count:
        print(f"Skipped {scan.missing_file_count} unreadable files; "
              f"{scan.unsupported_count} photos without a fingerprint")

    log_operation(logger, 'sync', collection_id=collection_id,
                  scanned=scan.scanned_count, added=result.added,
                  removed=result.removed, restored=result.restored,
                  relocated=result.relocated,
                  missing=scan.missing_file_count,
                  unsupported=scan.unsupported_count)


def exact_command(args, config: SystemConfig):
    """Group byte-identical photos"""
    database = _open_database(args, config)
    try:
        collection_id, photos = _load_photos(database, args)
        if not photos:
            return

        builder = DuplicateGroupBuilder(config)
        result = builder.exact(
            photos,
            collection_id=collection_id,
            on_hashed=lambda photo, digest: database.set_content_hash(photo.id, digest),
        )
        database.replace_groups(collection_id, "exact", result.groups)

        print(f"\nFound {len(result.groups)} exact groups "
              f"with {result.duplicate_photo_count} photos")
        if result.missing_file_count:
            print(f"Could not read {result.missing_file_count} files")

        _write_report(args, result.groups, photos)
    finally:
        database.close()

    log_operation(logger, 'exact', collection_id=collection_id,
                  scanned=result.scanned_count, hashed=result.hashed_count,
                  missing=result.missing_file_count, groups=len(result.groups))


def similar_command(args, config: SystemConfig):
    """Group visually similar photos"""
    database = _open_database(args, config)
    try:
        collection_id, photos = _load_photos(database, args)
        if not photos:
            return

        builder = DuplicateGroupBuilder(config)
        result = builder.similar(
            photos,
            collection_id=collection_id,
            policy=args.policy,
            threshold=args.threshold,
        )
        database.replace_groups(collection_id, "similar", result.groups)

        print(f"\nFound {len(result.groups)} similar groups "
              f"with {result.candidate_photo_count} photos ({result.policy} policy)")

        _write_report(args, result.groups, photos)
    finally:
        database.close()

    log_operation(logger, 'similar', collection_id=collection_id,
                  policy=result.policy, scanned=result.scanned_count,
                  candidates=result.candidate_count,
                  pairs=result.compared_pairs, groups=len(result.groups))


def groups_command(args, config: SystemConfig):
    """List stored groups"""
    database = _open_database(args, config)
    try:
        collection_id = _collection_id(args, database)
        groups = database.list_groups(collection_id, kind=args.kind)
        photos_by_id = {p.id: p for p in database.get_photos(collection_id, existing_only=False)}
    finally:
        database.close()

    if args.json:
        output = [
            {
                'id': g.id,
                'kind': g.kind,
                'confidence': g.confidence,
                'photos': [
                    {'id': m.photo_id, 'rank': m.rank,
                     'source_path': photos_by_id[m.photo_id].source_path}
                    for m in g.members
                ],
            }
            for g in groups
        ]
        print(json.dumps(output, indent=2))
        return

    for i, group in enumerate(groups, 1):
        print(f"\nGroup {i} [{group.kind}] {group.id} (confidence {group.confidence:.2f}):")
        for member in group.members:
            print(f"  {member.rank}. {photos_by_id[member.photo_id].source_path}")


def pick_command(args, config: SystemConfig):
    """Keep one photo of a group and discard the rest"""
    database = _open_database(args, config)
    try:
        collection_id = _collection_id(args, database)
        group = database.get_group(collection_id, args.group_id)
        if group is None:
            print(f"Group {args.group_id} not found")
            return 1

        decisions = pick_group_photo(group, args.keep, not args.no_reject_others)
        database.apply_decisions(decisions)
    finally:
        database.close()

    print(f"Updated {len(decisions)} photos")


def decide_command(args, config: SystemConfig):
    """Record a review decision for one photo"""
    database = _open_database(args, config)
    try:
        collection_id = _collection_id(args, database)
        photo = database.get_photo(args.photo_id)
        if photo is None or photo.collection_id != collection_id:
            print(f"Photo {args.photo_id} not found in {args.directory}")
            return 1

        database.set_status(photo.id, args.status)
    finally:
        database.close()

    print(f"{photo.file_name}: {args.status}")
    log_operation(logger, 'decide', collection_id=collection_id,
                  photo_id=photo.id, status=args.status)


def status_command(args, config: SystemConfig):
    """Show review progress for a collection"""
    database = _open_database(args, config)
    try:
        progress = database.get_progress(_collection_id(args, database))
    finally:
        database.close()

    if args.json:
        print(json.dumps(progress, indent=2))
        return

    reviewed = progress['total_photos'] - progress['unreviewed_count']
    print(f"Photos: {progress['total_photos']} ({reviewed} reviewed)")
    print(f"  keep {progress['keep_count']}, maybe {progress['maybe_count']}, "
          f"discard {progress['discard_count']}, unreviewed {progress['unreviewed_count']}")
    print(f"Groups: {progress['exact_group_count']} exact, "
          f"{progress['similar_group_count']} similar")


def export_command(args, config: SystemConfig):
    """Copy kept photos to an output directory"""
    database = _open_database(args, config)
    try:
        collection_id = _collection_id(args, database)
        photos = database.get_photos(collection_id)
    finally:
        database.close()

    result = SelectionManager(args.output).export_selected(photos)
    print(f"Exported {result.exported}, skipped {result.skipped}, "
          f"missing {result.missing}, failed {result.failed}")


def hash_command(args, config: SystemConfig):
    print(hash_content(args.file))


def fingerprint_command(args, config: SystemConfig):
    print(compute_fingerprint(args.file,
                              hash_size=config.fingerprint.hash_size,
                              resample=config.fingerprint.resample))


def distance_command(args, config: SystemConfig):
    print(hamming_distance(args.a, args.b))


def _add_collection_arguments(parser, directory_help='Synced folder'):
    parser.add_argument('directory', help=directory_help)
    parser.add_argument('-c', '--collection',
                        help='Collection name; keeps photo ids stable when the folder moves')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="picture-pruner",
        description="Find duplicate and near-duplicate photos and curate a selection"
    )
    parser.add_argument('--config', default="config.yaml", help='YAML configuration file')
    parser.add_argument('--db', help='SQLite database path (overrides config)')
    parser.add_argument('--log-level', help='Console log level (overrides config)')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    sync_parser = subparsers.add_parser('sync', help='Scan a folder and update the database')
    _add_collection_arguments(sync_parser, 'Folder containing photos')
    sync_parser.set_defaults(func=sync_command)

    exact_parser = subparsers.add_parser('exact', help='Detect byte-identical photos')
    _add_collection_arguments(exact_parser)
    exact_parser.add_argument('-r', '--report', help='Output HTML report path')
    exact_parser.set_defaults(func=exact_command)

    similar_parser = subparsers.add_parser('similar', help='Detect visually similar photos')
    _add_collection_arguments(similar_parser)
    similar_parser.add_argument('-p', '--policy', choices=['perceptual', 'heuristic'],
                                help='Similarity policy (default from config)')
    similar_parser.add_argument('-t', '--threshold', type=float,
                                help='Max Hamming distance (perceptual) or min score (heuristic)')
    similar_parser.add_argument('-r', '--report', help='Output HTML report path')
    similar_parser.set_defaults(func=similar_command)

    groups_parser = subparsers.add_parser('groups', help='List stored groups')
    _add_collection_arguments(groups_parser)
    groups_parser.add_argument('-k', '--kind', choices=['exact', 'similar'])
    groups_parser.add_argument('--json', action='store_true', help='Print JSON')
    groups_parser.set_defaults(func=groups_command)

    pick_parser = subparsers.add_parser('pick', help='Keep one photo of a group')
    _add_collection_arguments(pick_parser)
    pick_parser.add_argument('group_id', help='Group id')
    pick_parser.add_argument('--keep', help='Photo id to keep (default: first ranked)')
    pick_parser.add_argument('--no-reject-others', action='store_true',
                             help='Leave the other photos undecided')
    pick_parser.set_defaults(func=pick_command)

    decide_parser = subparsers.add_parser('decide', help='Set the review status of a photo')
    _add_collection_arguments(decide_parser)
    decide_parser.add_argument('photo_id', help='Photo id')
    decide_parser.add_argument('status', choices=list(PHOTO_STATUSES))
    decide_parser.set_defaults(func=decide_command)

    status_parser = subparsers.add_parser('status', help='Show review progress')
    _add_collection_arguments(status_parser)
    status_parser.add_argument('--json', action='store_true', help='Print JSON')
    status_parser.set_defaults(func=status_command)

    export_parser = subparsers.add_parser('export', help='Copy kept photos to a folder')
    _add_collection_arguments(export_parser)
    export_parser.add_argument('output', help='Destination folder')
    export_parser.set_defaults(func=export_command)

    hash_parser = subparsers.add_parser('hash', help='Print the content hash of a file')
    hash_parser.add_argument('file')
    hash_parser.set_defaults(func=hash_command)

    fingerprint_parser = subparsers.add_parser('fingerprint',
                                               help='Print the perceptual fingerprint of an image')
    fingerprint_parser.add_argument('file')
    fingerprint_parser.set_defaults(func=fingerprint_command)

    distance_parser = subparsers.add_parser('distance',
                                            help='Hamming distance between two fingerprints')
    distance_parser.add_argument('a')
    distance_parser.add_argument('b')
    distance_parser.set_defaults(func=distance_command)

    return parser


def main_cli(argv=None):
    """Main CLI entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    config = SystemConfig.load(args.config)
    setup_logging(args.log_level or config.log_level, config.log_dir)

    try:
        return args.func(args, config) or 0
    except (OSError, UnsupportedImage, InvalidInput) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main_cli())
