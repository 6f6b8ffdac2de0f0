"""Entry point for Radioshelf: organize, share and play internet radio stations."""

import argparse
import asyncio
import inspect
import logging
import os
import sys
from dataclasses import dataclass
from typing import Optional

from radioshelf.adapters.config.json_config_adapter import JsonConfigAdapter
from radioshelf.adapters.runtime.asyncio_runtime import AsyncioScheduler, SystemClock
from radioshelf.adapters.storage.json_file_store import JsonFileStore
from radioshelf.domain.errors import RadioshelfError, StationNotFoundError
from radioshelf.domain.model import SORT_LABELS, ImportMode, PlaybackPhase, SortOption, StationCandidate, StationRecord
from radioshelf.services.library_store import LibraryStore
from radioshelf.services.listening_time import ListeningLedger, ListeningTimeAccumulator
from radioshelf.services.merge_resolver import MergeResolver
from radioshelf.version import __version__

logger = logging.getLogger("radioshelf.cli")

LOG_LEVEL_ENV = "RADIOSHELF_LOG_LEVEL"


@dataclass
class App:
    cfg: dict
    storage: JsonFileStore
    clock: SystemClock
    scheduler: AsyncioScheduler
    ledger: ListeningLedger
    accumulator: ListeningTimeAccumulator
    library: LibraryStore
    resolver: MergeResolver

    def catalog(self):
        from radioshelf.adapters.catalog.radio_browser_adapter import RadioBrowserCatalog

        return RadioBrowserCatalog(self.cfg["catalog_servers"], float(self.cfg["catalog_timeout"]))


def build_app(cfg: dict, loop: asyncio.AbstractEventLoop) -> App:
    storage = JsonFileStore(cfg["data_file"])
    clock = SystemClock()
    scheduler = AsyncioScheduler(loop)
    ledger = ListeningLedger(storage)
    accumulator = ListeningTimeAccumulator(ledger, scheduler, clock, int(cfg["listening_tick_seconds"] * 1000))
    library = LibraryStore(storage, ledger, clock)
    return App(cfg, storage, clock, scheduler, ledger, accumulator, library, MergeResolver(library))


def find_station(library: LibraryStore, ref: str) -> StationRecord:
    """Resolve an id, a preset slot number, or a unique case-insensitive name."""
    record = library.get(ref)
    if record is not None:
        return record
    if ref.isdigit():
        record = library.preset_at(int(ref))
        if record is not None:
            return record
    matches = [r for r in library.all() if r.label.lower() == ref.lower()]
    if len(matches) == 1:
        return matches[0]
    raise StationNotFoundError(ref)


def _format_duration(ms: int) -> str:
    minutes, _ = divmod(ms // 1000, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes:02d}m"


def _print_station(record: StationRecord) -> None:
    slot = f"[{record.preset_slot}]" if record.preset_slot else "   "
    extra = []
    if record.country_code:
        extra.append(record.country_code.upper())
    if record.bitrate_kbps:
        extra.append(f"{record.bitrate_kbps} kbps")
    if record.play_count:
        extra.append(f"{record.play_count} plays")
    suffix = f"  ({', '.join(extra)})" if extra else ""
    print(f"{slot} {record.id}  {record.label}{suffix}")
    if record.note:
        print(f"      note: {record.note}")


def _print_merge(result, failed: int = 0) -> None:
    print(f"Imported {len(result.accepted)} stations.")
    if result.duplicate_count:
        print(f"Skipped {result.duplicate_count} duplicates.")
    if result.overflow_count:
        print(f"Skipped {result.overflow_count} stations: library is full.")
    if failed:
        print(f"{failed} shared stations could not be resolved.")


# ── Commands ────────────────────────────────────────────────────────


def cmd_list(app: App, args) -> int:
    records = app.library.sorted_filtered_view(args.sort, args.filter or "")
    for record in records:
        _print_station(record)
    sort = SortOption(args.sort) if args.sort else app.library.sort_option
    print(f"{len(records)} stations, sorted by {SORT_LABELS[sort].lower()}.")
    return 0


def cmd_add(app: App, args) -> int:
    from radioshelf.usecases.catalog_stations import AddFromCatalogUseCase

    if args.uuid:
        record = AddFromCatalogUseCase(app.catalog(), app.library).execute(args.uuid)
    else:
        if not args.url or not args.name:
            print("Either --uuid, or both --url and --name are required.")
            return 2
        record = app.library.add(
            StationCandidate(stream_url=args.url, display_name=args.name, note=args.note, country_code=args.country)
        )
    print(f"Added {record.label} ({record.id}).")
    return 0


def cmd_remove(app: App, args) -> int:
    record = find_station(app.library, args.station)
    app.library.remove(record.id)
    print(f"Removed {record.label}.")
    return 0


def cmd_rename(app: App, args) -> int:
    record = find_station(app.library, args.station)
    app.library.rename(record.id, args.name)
    print(f"Renamed to {record.label}.")
    return 0


def cmd_note(app: App, args) -> int:
    record = find_station(app.library, args.station)
    app.library.update_note(record.id, args.text)
    print("Note saved." if record.note else "Note cleared.")
    return 0


def cmd_preset(app: App, args) -> int:
    record = find_station(app.library, args.station)
    if args.slot is None:
        slot = app.library.add_to_presets(record.id)
        if slot is None:
            print("All preset slots are taken; pass a slot number to overwrite one.")
            return 1
    else:
        if not app.library.set_preset(record.id, args.slot):
            print(f"Invalid preset slot: {args.slot}")
            return 2
        slot = args.slot
    print(f"{record.label} is now preset {slot}.")
    return 0


def cmd_unpreset(app: App, args) -> int:
    if not app.library.clear_preset(args.slot):
        print(f"Preset {args.slot} is empty.")
        return 1
    print(f"Preset {args.slot} cleared.")
    return 0


def cmd_sort(app: App, args) -> int:
    app.library.set_sort_option(args.option)
    print(f"Default sort: {SORT_LABELS[app.library.sort_option].lower()}.")
    return 0


def cmd_export(app: App, args) -> int:
    from radioshelf.usecases.backup import ExportBackupUseCase

    path = ExportBackupUseCase(app.library).execute(args.path)
    print(f"Exported {len(app.library)} stations to {path}.")
    return 0


def cmd_import(app: App, args) -> int:
    from radioshelf.usecases.backup import ImportBackupUseCase

    result = ImportBackupUseCase(app.resolver).execute(args.path, ImportMode(args.mode))
    _print_merge(result)
    return 0


def cmd_share(app: App, args) -> int:
    from radioshelf.adapters.sharing.shortener_adapter import HttpShortener
    from radioshelf.usecases.share_stations import ShareStationsUseCase

    if args.stations:
        records = [find_station(app.library, ref) for ref in args.stations]
    elif args.presets:
        records = app.library.presets()
    else:
        records = app.library.all()
    shortener = HttpShortener(app.cfg["shortener_url"]) if app.cfg.get("shortener_url") else None
    link = ShareStationsUseCase(shortener, app.cfg["share_base_url"]).execute(
        args.username or app.cfg.get("username") or "", records, args.list_name
    )
    print(link.url)
    return 0


def cmd_open_share(app: App, args) -> int:
    from radioshelf.usecases.import_shared_list import ImportSharedListUseCase

    use_case = ImportSharedListUseCase(app.catalog(), app.resolver)
    shared = use_case.prepare(args.link)
    print(f"{shared.list_name}: {len(shared.candidates)} stations from {shared.username}.")
    if shared.preview.duplicates:
        print(f"{len(shared.preview.duplicates)} are already in your library.")
    if not args.apply:
        for candidate in shared.preview.new:
            print(f"  + {candidate.display_name}")
        print("Run again with --apply to import them.")
        return 0
    result = use_case.apply(shared, ImportMode(args.mode))
    _print_merge(result, shared.failed_count)
    return 0


def cmd_search(app: App, args) -> int:
    from radioshelf.usecases.catalog_stations import SearchCatalogUseCase

    hits = SearchCatalogUseCase(app.catalog(), app.library).execute(args.query, by=args.by, limit=args.limit)
    for hit in hits:
        c = hit.candidate
        marker = "*" if hit.in_library else " "
        print(f"{marker} {c.remote_id}  {c.display_name}  ({c.country_code or '??'}, {c.bitrate_kbps or 0} kbps)")
    if not hits:
        print("No stations found.")
    return 0


def cmd_starter(app: App, args) -> int:
    from radioshelf.adapters.starter_packs.starter_pack_adapter import StarterPackLoader
    from radioshelf.usecases.add_starter_pack import AddStarterPackUseCase

    loader = StarterPackLoader(app.cfg["starter_pack_base_url"])
    _print_merge(AddStarterPackUseCase(loader, app.resolver).execute(args.name))
    return 0


def cmd_stats(app: App, args) -> int:
    stats = app.library.stats()
    print(f"Stations:        {stats.total_stations}")
    print(f"Presets:         {stats.preset_count}")
    print(f"Countries:       {stats.countries_represented}")
    print(f"Total plays:     {stats.total_plays}")
    print(f"Listening time:  {_format_duration(stats.total_listening_time_ms)}")
    top = app.library.most_played()
    if top:
        print("Most played:")
        for record in top:
            print(f"  {record.play_count:>4}  {record.label}")
    return 0


async def cmd_play(app: App, args) -> int:
    from radioshelf.adapters.playback.vlc_backend import VlcStreamBackend
    from radioshelf.services.playback_session import PlaybackSession

    record = find_station(app.library, args.station)
    loop = asyncio.get_running_loop()
    session = PlaybackSession(
        VlcStreamBackend(loop),
        app.library,
        app.accumulator,
        app.storage,
        app.clock,
        prefer_https=bool(app.cfg["prefer_https"]),
        default_volume=float(app.cfg["default_volume"]),
    )
    if args.volume is not None:
        session.set_volume(args.volume)

    finished = asyncio.Event()
    session.events.on("phase_changed", lambda change: print(f"{change.current.value}..."))
    session.events.on("playback_error", lambda failure: print(f"{failure.station_label}: {failure.message}"))
    session.events.on(
        "phase_changed",
        lambda change: finished.set() if change.current in (PlaybackPhase.ERROR, PlaybackPhase.IDLE) else None,
    )

    session.load(record)
    try:
        await asyncio.wait_for(finished.wait(), timeout=args.duration)
    except asyncio.TimeoutError:
        pass
    finally:
        failed = session.phase is PlaybackPhase.ERROR
        session.close()
    return 1 if failed else 0


COMMANDS = {
    "list": cmd_list,
    "add": cmd_add,
    "remove": cmd_remove,
    "rename": cmd_rename,
    "note": cmd_note,
    "preset": cmd_preset,
    "unpreset": cmd_unpreset,
    "sort": cmd_sort,
    "export": cmd_export,
    "import": cmd_import,
    "share": cmd_share,
    "open-share": cmd_open_share,
    "search": cmd_search,
    "starter": cmd_starter,
    "stats": cmd_stats,
    "play": cmd_play,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="radioshelf", description="Your personal internet radio shelf.")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", help="Path to config.json")
    sub = parser.add_subparsers(dest="command", required=True)

    sort_choices = [option.value for option in SortOption]
    mode_choices = [mode.value for mode in ImportMode]

    p = sub.add_parser("list", help="List stations")
    p.add_argument("--sort", choices=sort_choices)
    p.add_argument("--filter")

    p = sub.add_parser("add", help="Add a station by URL or catalog uuid")
    p.add_argument("--uuid")
    p.add_argument("--url")
    p.add_argument("--name")
    p.add_argument("--note")
    p.add_argument("--country")

    p = sub.add_parser("remove", help="Remove a station")
    p.add_argument("station")

    p = sub.add_parser("rename", help="Set or clear a custom name")
    p.add_argument("station")
    p.add_argument("name", nargs="?", default="")

    p = sub.add_parser("note", help="Set or clear a station note")
    p.add_argument("station")
    p.add_argument("text", nargs="?", default="")

    p = sub.add_parser("preset", help="Assign a station to a preset slot")
    p.add_argument("station")
    p.add_argument("slot", nargs="?", type=int)

    p = sub.add_parser("unpreset", help="Clear a preset slot")
    p.add_argument("slot", type=int)

    p = sub.add_parser("sort", help="Set the default sort order")
    p.add_argument("option", choices=sort_choices)

    p = sub.add_parser("export", help="Write a JSON backup")
    p.add_argument("path", nargs="?", default="radioshelf-backup.json")

    p = sub.add_parser("import", help="Import a JSON backup")
    p.add_argument("path")
    p.add_argument("--mode", choices=mode_choices, default=ImportMode.MERGE.value)

    p = sub.add_parser("share", help="Create a share link")
    p.add_argument("stations", nargs="*")
    p.add_argument("--presets", action="store_true", help="Share the preset stations")
    p.add_argument("--username")
    p.add_argument("--list-name")

    p = sub.add_parser("open-share", help="Preview or import a share link")
    p.add_argument("link")
    p.add_argument("--apply", action="store_true")
    p.add_argument("--mode", choices=mode_choices, default=ImportMode.MERGE.value)

    p = sub.add_parser("search", help="Search the Radio Browser catalog")
    p.add_argument("query")
    p.add_argument("--by", choices=["name", "tag", "country", "language"], default="name")
    p.add_argument("--limit", type=int, default=20)

    p = sub.add_parser("starter", help="Merge a starter pack into the library")
    p.add_argument("name", help="Pack name, file path or URL")

    sub.add_parser("stats", help="Library statistics")

    p = sub.add_parser("play", help="Play a station")
    p.add_argument("station", help="Station id, preset slot or name")
    p.add_argument("--duration", type=float, help="Stop after this many seconds")
    p.add_argument("--volume", type=float)

    return parser


async def run(args) -> int:
    cfg = JsonConfigAdapter(args.config).load()
    app = build_app(cfg, asyncio.get_running_loop())
    handler = COMMANDS[args.command]
    logger.debug("Running %s (data_file=%s)", args.command, cfg["data_file"])
    if inspect.iscoroutinefunction(handler):
        return await handler(app, args)
    return handler(app, args)


def main(argv: Optional[list[str]] = None) -> int:
    logging.basicConfig(
        level=os.environ.get(LOG_LEVEL_ENV, "WARNING").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(run(args))
    except RadioshelfError as exc:
        print(f"Error: {exc}")
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
