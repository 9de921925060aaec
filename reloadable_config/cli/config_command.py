import argparse
import sys
import threading
from pathlib import Path

from ..config.decoder import ConfigFormat, decode_file, detect_format, encode
from ..config.schema import DocumentConfig
from ..config.store import ConfigurationStore
from ..exceptions import DecodeError
from ..reloadable import FunctionSubscriber
from ..settings import load_settings
from ..utils.logs import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="reloadable-config", description="Inspect and live-watch configuration files")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # Show
    show_parser = subparsers.add_parser("show", help="Decode a configuration file and print it")
    show_parser.add_argument("file", type=Path, help="JSON or YAML configuration file")
    show_parser.add_argument("--format", choices=[f.value for f in ConfigFormat],
                             help="Output format (defaults to the file's own format)")

    # Watch
    watch_parser = subparsers.add_parser("watch", help="Print the configuration every time it changes")
    watch_parser.add_argument("file", type=Path, help="JSON or YAML configuration file")
    watch_parser.add_argument("--format", choices=[f.value for f in ConfigFormat],
                              help="Output format (defaults to the file's own format)")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings()
    configure_logging(settings.log_level)

    fmt = ConfigFormat(args.format) if args.format else (detect_format(args.file) or ConfigFormat.JSON)

    if args.command == "show":
        try:
            config = decode_file(args.file, DocumentConfig)
        except DecodeError as e:
            print(f"error: {e}", file=sys.stderr)
            return 1
        print(encode(config, fmt))
        return 0

    elif args.command == "watch":
        store = ConfigurationStore(DocumentConfig, settings=settings)
        store.initialize([args.file])
        if store.get() is None:
            print(f"error: could not load {args.file}", file=sys.stderr)
            return 1

        def show_current():
            print(encode(store.get(), fmt), flush=True)

        store.register_subscriber(FunctionSubscriber(show_current))
        show_current()
        try:
            threading.Event().wait()
        except KeyboardInterrupt:
            pass
        finally:
            store.close()
        return 0

    return 2


if __name__ == "__main__":
    sys.exit(main())
