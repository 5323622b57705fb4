#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from backend import config as backend_config
from backend.client import SORT_ORDERS, BackendError, RemoteInspectionStore, StorageClient
from backend.local_store import LocalInspectionStore
from inspection import state as st
from inspection.catalog import CatalogError, catalog_stats, default_catalog
from inspection.costs import format_cost
from inspection.csv_export import write_items_csv
from inspection.images import ImageError, describe_image
from inspection.report import build_item_rows, save_report
from inspection.session import InspectionSession, SaveRejected

logger = logging.getLogger("vehicle_inspector")

DEFAULT_FILE = 'inspection.json'


class CommandError(Exception):
    """Raised for invalid command line usage that argparse cannot catch."""


def _require_remote() -> None:
    missing = backend_config.validate_config()
    if missing:
        raise CommandError(f"Hosted backend not configured; set {', '.join(missing)}")


def _store(args: argparse.Namespace):
    if getattr(args, 'remote', False):
        _require_remote()
        return RemoteInspectionStore(access_token=backend_config.ACCESS_TOKEN)
    store_dir = getattr(args, 'store_dir', None)
    return LocalInspectionStore(Path(store_dir) if store_dir else None)


def _read_doc(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise CommandError(f"No working inspection at {path}; run 'new' or 'fetch' first")
    try:
        with path.open('r', encoding='utf-8') as f:
            doc = json.load(f)
    except ValueError as exc:
        raise CommandError(f"{path} is not a valid inspection document: {exc}") from exc
    return doc if isinstance(doc, dict) else {}


def _write_doc(session: InspectionSession, path: Path) -> None:
    doc: Dict[str, Any] = st.to_document(session.state)
    if session.inspection_id:
        doc['id'] = session.inspection_id
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open('w', encoding='utf-8') as f:
        json.dump(doc, f, indent=2, ensure_ascii=False)


def _open_session(args: argparse.Namespace, store: Any = None) -> InspectionSession:
    path = Path(args.file)
    doc = _read_doc(path)
    session = InspectionSession(store=store)
    session.load(doc, doc.get('id'))
    return session


def _print_messages(title: str, messages: List[str]) -> None:
    if not messages:
        return
    print(f"{title}:")
    for m in messages:
        print(f"  - {m}")


def cmd_checklist(args: argparse.Namespace) -> int:
    catalog = default_catalog()
    if args.json:
        print(json.dumps(catalog_stats(catalog), indent=2, ensure_ascii=False))
        return 0
    for category in catalog.get_categories():
        print(category)
        for item in catalog.get_category_items(category):
            number = catalog.get_item_ordinal(category, item.name)
            print(f"  {number:>3}. {item.name}")
            if args.details:
                print(f"       {item.description}")
    print(f"Total: {catalog.get_total_item_count()} items in {len(catalog)} categories")
    return 0


def cmd_new(args: argparse.Namespace) -> int:
    path = Path(args.file)
    if path.exists() and not args.force:
        raise CommandError(f"{path} already exists; use --force to start over")
    session = InspectionSession()
    for pair in args.vehicle or []:
        name, value = _split_pair(pair)
        session.update_vehicle_info(name, value)
    _write_doc(session, path)
    print(f"Started new inspection in {path}")
    return 0


def _split_pair(pair: str) -> tuple[str, str]:
    if '=' not in pair:
        raise CommandError(f"Expected FIELD=VALUE, got {pair!r}")
    name, value = pair.split('=', 1)
    if st.resolve_vehicle_field(name) is None:
        raise CommandError(f"Unknown vehicle field {name!r}; choose from {', '.join(st.VEHICLE_FIELDS)}")
    return name, value


def cmd_set_vehicle(args: argparse.Namespace) -> int:
    session = _open_session(args)
    for pair in args.pairs:
        name, value = _split_pair(pair)
        session.update_vehicle_info(name, value)
    _write_doc(session, Path(args.file))
    result = session.vehicle_validation
    _print_messages('Errors', result.errors)
    _print_messages('Warnings', result.warnings)
    return 0


def cmd_evaluate(args: argparse.Namespace) -> int:
    session = _open_session(args)
    current = session.state.evaluation(args.category, args.item)
    score = args.score if args.score is not None else current.score
    cost = args.cost if args.cost is not None else current.repair_cost
    notes = args.notes if args.notes is not None else current.notes
    session.evaluate_item(args.category, args.item, score, cost, notes)
    _write_doc(session, Path(args.file))
    ev = session.state.evaluation(args.category, args.item)
    print(f"{args.category} / {args.item}: score {ev.score}/10, repair {format_cost(ev.repair_cost)}"
          f"{'' if ev.evaluated else ' (not evaluated)'}")
    return 0


def cmd_attach(args: argparse.Namespace) -> int:
    session = _open_session(args)
    # Fail on unknown items before uploading anything
    if (args.category, args.item) not in session.state.items:
        raise st.UnknownItemError(args.category, args.item)
    image_path = Path(args.image)
    if args.upload:
        _require_remote()
        client = StorageClient(access_token=backend_config.ACCESS_TOKEN)
        ref = client.upload(image_path, session.inspection_id or 'draft', args.category, args.item)
    else:
        ref = describe_image(image_path)
    before = len(session.state.evaluation(args.category, args.item).images)
    session.add_image(args.category, args.item, ref)
    after = len(session.state.evaluation(args.category, args.item).images)
    if after == before:
        raise CommandError(f"{args.category} / {args.item} cannot take more images")
    _write_doc(session, Path(args.file))
    print(f"Attached {ref.url} ({after} image{'s' if after != 1 else ''})")
    return 0


def cmd_detach(args: argparse.Namespace) -> int:
    session = _open_session(args)
    images = session.state.evaluation(args.category, args.item).images
    if args.index < 0 or args.index >= len(images):
        raise CommandError(f"No image #{args.index} on {args.category} / {args.item}")
    image = images[args.index]
    if args.remote and image.file_name:
        _require_remote()
        StorageClient(access_token=backend_config.ACCESS_TOKEN).delete(image.file_name)
    session.remove_image(args.category, args.item, args.index)
    _write_doc(session, Path(args.file))
    print(f"Removed {image.url}")
    return 0


def cmd_metrics(args: argparse.Namespace) -> int:
    session = _open_session(args)
    metrics = session.metrics
    if args.json:
        print(json.dumps(metrics.to_dict(), indent=2, ensure_ascii=False))
        return 0
    for name, cat in metrics.categories.items():
        avg = f"{cat.display_average:.1f}" if cat.scored_items else '-'
        print(f"{name:<24} {cat.evaluated_items:>3}/{cat.total_items:<3} {cat.completion_percentage:5.1f}%  "
              f"avg {avg:>4}  {format_cost(cat.total_repair_cost)}")
    overall = metrics.overall
    avg = f"{overall.display_average:.1f}" if overall.scored_items else '-'
    print(f"{'Total':<24} {overall.evaluated_items:>3}/{overall.total_items:<3} "
          f"{overall.completion_percentage:5.1f}%  avg {avg:>4}  {format_cost(overall.total_repair_cost)}")
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    session = _open_session(args)
    result = session.inspection_validation
    _print_messages('Errors', result.errors)
    _print_messages('Warnings', result.warnings)
    if result.is_valid:
        print("Inspection can be saved")
        return 0
    return 1


def cmd_report(args: argparse.Namespace) -> int:
    session = _open_session(args)
    path = save_report(session.catalog, session.state, session.metrics, Path(args.out_dir),
                       base_name=args.name, to_json=args.json)
    print(f"Report written to {path}")
    return 0


def cmd_export_csv(args: argparse.Namespace) -> int:
    session = _open_session(args)
    rows = build_item_rows(session.catalog, session.state)
    if args.evaluated_only:
        rows = [r for r in rows if r['evaluated']]
    out = Path(args.out)
    count = write_items_csv(out, rows, delimiter=args.delimiter)
    print(f"Wrote {count} rows to {out}")
    return 0


def cmd_save(args: argparse.Namespace) -> int:
    session = _open_session(args, store=_store(args))
    try:
        inspection_id = session.save()
    except SaveRejected as exc:
        _print_messages('Cannot save', exc.errors)
        return 1
    _write_doc(session, Path(args.file))
    print(f"Saved inspection {inspection_id}")
    return 0


def cmd_fetch(args: argparse.Namespace) -> int:
    path = Path(args.file)
    if path.exists() and not args.force:
        raise CommandError(f"{path} already exists; use --force to overwrite it")
    session = InspectionSession(store=_store(args))
    session.open(args.id)
    _write_doc(session, path)
    print(f"Fetched inspection {args.id} into {path}")
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    rows = _store(args).list_recent(args.limit, search=args.search, sort=args.sort)
    if args.json:
        print(json.dumps(rows, indent=2, ensure_ascii=False))
        return 0
    if not rows:
        print("No saved inspections")
        return 0
    for row in rows:
        info = st.VehicleInfo.from_dict(row.get('vehicle_info'))
        label = ' '.join(b for b in (info.brand, info.model, info.plate) if b.strip()) or 'N/A'
        print(f"{row.get('id')}  {str(row.get('created_at') or '')[:19]:<19}  {label}  "
              f"{format_cost(row.get('total_repair_cost') or 0)}")
    return 0


def cmd_delete(args: argparse.Namespace) -> int:
    _store(args).delete(args.id)
    print(f"Deleted inspection {args.id}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Vehicle condition inspection")
    parser.add_argument('--log-level', default=backend_config.LOG_LEVEL, help='Logging level (default from LOG_LEVEL)')
    sub = parser.add_subparsers(dest='cmd', required=True)

    doc = argparse.ArgumentParser(add_help=False)
    doc.add_argument('--file', default=DEFAULT_FILE, help='Working inspection JSON document')

    store = argparse.ArgumentParser(add_help=False)
    store.add_argument('--remote', action='store_true', help='Use the hosted backend instead of the local store')
    store.add_argument('--store-dir', default=None, help='Local store directory (defaults to LOCAL_STORE_DIR)')

    p_cl = sub.add_parser('checklist', help='Print the inspection checklist')
    p_cl.add_argument('--details', action='store_true', help='Include item descriptions')
    p_cl.add_argument('--json', action='store_true', help='Print checklist statistics as JSON')
    p_cl.set_defaults(func=cmd_checklist)

    p_new = sub.add_parser('new', parents=[doc], help='Start a new inspection document')
    p_new.add_argument('--force', action='store_true', help='Overwrite an existing document')
    p_new.add_argument('--vehicle', nargs='*', metavar='FIELD=VALUE', help='Initial vehicle details')
    p_new.set_defaults(func=cmd_new)

    p_sv = sub.add_parser('set-vehicle', parents=[doc], help='Set vehicle details')
    p_sv.add_argument('pairs', nargs='+', metavar='FIELD=VALUE', help='e.g. brand=Toyota plate=ABC123')
    p_sv.set_defaults(func=cmd_set_vehicle)

    p_ev = sub.add_parser('evaluate', parents=[doc], help='Score a checklist item')
    p_ev.add_argument('category', help='Checklist category')
    p_ev.add_argument('item', help='Item name within the category')
    p_ev.add_argument('--score', type=float, default=None, help='Score 0-10 (0 means not scored)')
    p_ev.add_argument('--cost', default=None, help='Estimated repair cost, e.g. 50.000')
    p_ev.add_argument('--notes', default=None, help='Inspector notes')
    p_ev.set_defaults(func=cmd_evaluate)

    p_at = sub.add_parser('attach', parents=[doc], help='Attach a photo to an item')
    p_at.add_argument('category', help='Checklist category')
    p_at.add_argument('item', help='Item name within the category')
    p_at.add_argument('image', help='Path to the image file')
    p_at.add_argument('--upload', action='store_true', help='Upload to hosted storage instead of linking the local file')
    p_at.set_defaults(func=cmd_attach)

    p_dt = sub.add_parser('detach', parents=[doc], help='Remove a photo from an item')
    p_dt.add_argument('category', help='Checklist category')
    p_dt.add_argument('item', help='Item name within the category')
    p_dt.add_argument('index', type=int, help='Zero-based image position')
    p_dt.add_argument('--remote', action='store_true', help='Also delete the object from hosted storage')
    p_dt.set_defaults(func=cmd_detach)

    p_m = sub.add_parser('metrics', parents=[doc], help='Show completion, averages and costs')
    p_m.add_argument('--json', action='store_true', help='Print metrics as JSON')
    p_m.set_defaults(func=cmd_metrics)

    p_va = sub.add_parser('validate', parents=[doc], help='Check whether the inspection can be saved')
    p_va.set_defaults(func=cmd_validate)

    p_rp = sub.add_parser('report', parents=[doc], help='Write a text report')
    p_rp.add_argument('--out-dir', default='reports', help='Directory to write reports')
    p_rp.add_argument('--name', default=None, help='Base name for report files')
    p_rp.add_argument('--json', action='store_true', help='Also write JSON report')
    p_rp.set_defaults(func=cmd_report)

    p_csv = sub.add_parser('export-csv', parents=[doc], help='Export item evaluations as CSV')
    p_csv.add_argument('out', help='CSV output path')
    p_csv.add_argument('--evaluated-only', action='store_true', help='Skip items that were not evaluated')
    p_csv.add_argument('--delimiter', default=',', help="Field separator (use ';' for decimal-comma spreadsheets)")
    p_csv.set_defaults(func=cmd_export_csv)

    p_save = sub.add_parser('save', parents=[doc, store], help='Validate and save the inspection')
    p_save.set_defaults(func=cmd_save)

    p_fetch = sub.add_parser('fetch', parents=[doc, store], help='Load a saved inspection into the working document')
    p_fetch.add_argument('id', help='Inspection id')
    p_fetch.add_argument('--force', action='store_true', help='Overwrite an existing document')
    p_fetch.set_defaults(func=cmd_fetch)

    p_ls = sub.add_parser('list', parents=[store], help='List recently saved inspections')
    p_ls.add_argument('--limit', type=int, default=backend_config.LIST_LIMIT, help='Maximum rows to show')
    p_ls.add_argument('--search', default=None, help='Only rows whose brand, model, plate or seller contains this text')
    p_ls.add_argument('--sort', choices=list(SORT_ORDERS), default='date_desc', help='Row order (default newest first)')
    p_ls.add_argument('--json', action='store_true', help='Print rows as JSON')
    p_ls.set_defaults(func=cmd_list)

    p_del = sub.add_parser('delete', parents=[store], help='Delete a saved inspection')
    p_del.add_argument('id', help='Inspection id')
    p_del.set_defaults(func=cmd_delete)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    logger.debug("Running %s", args.cmd)
    try:
        return args.func(args) or 0
    except (CommandError, BackendError, ImageError, CatalogError, st.UnknownItemError, SaveRejected) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
