import argparse
import asyncio
import json
import os
import sys

from assembler import bundle
from packager.config import CONFIG_FILE, BuildConfig, deep_merge
from packager.errors import PackagerError
from packager.log import log, set_verbose

STARTER_CONFIG = {
    "sources": [
        "src/reset.css",
        ["src/layout.css", "src/theme.css"],
    ],
    "destination": "dist/bundle.css",
    "options": {"minify": False, "watch": False, "css": {}},
    "request_options": {"timeout": 30},
}


def _json_arg(value):
    try:
        data = json.loads(value)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"not valid JSON: {e}")
    if not isinstance(data, dict):
        raise argparse.ArgumentTypeError("expected a JSON object")
    return data


def load_build(args):
    """Combine the config file (if any) with command line arguments."""
    if args.config:
        config = BuildConfig.load(args.config)
    elif not args.sources and os.path.exists(CONFIG_FILE):
        config = BuildConfig.load(CONFIG_FILE)
    else:
        config = BuildConfig()

    options = config.options.model_dump()
    if args.minify:
        options["minify"] = True
    if args.watch:
        options["watch"] = True
    if args.js:
        options["js"] = deep_merge(options.get("js", {}), args.js)
    if args.css:
        options["css"] = deep_merge(options.get("css", {}), args.css)

    return BuildConfig(
        sources=args.sources or config.sources,
        destination=args.output or config.destination,
        options=options,
        request_options=deep_merge(config.request_options, args.request or {}),
    )


async def _build(config):
    session = await bundle(config.sources, config.destination, config.options, config.request_options)
    log(f"Bundled {len(config.sources)} source(s) into {config.destination}")
    if session is None:
        return

    log("Watching for changes (Ctrl-C to stop)...")
    try:
        await session.wait()
    finally:
        session.stop()


def cmd_build(args):
    set_verbose(args.verbose)
    try:
        config = load_build(args)
    except PackagerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if not config.sources:
        print("Error: No sources given.", file=sys.stderr)
        sys.exit(1)
    if not config.destination:
        print("Error: No destination given (use -o).", file=sys.stderr)
        sys.exit(1)

    out_dir = os.path.dirname(config.destination)
    if out_dir and not os.path.exists(out_dir):
        os.makedirs(out_dir)

    try:
        asyncio.run(_build(config))
    except KeyboardInterrupt:
        log("Stopped watching.")
    except (PackagerError, OSError) as e:
        print(f"Error: Bundling failed:\n{e}", file=sys.stderr)
        sys.exit(1)


def cmd_init(args):
    if os.path.exists(CONFIG_FILE) and not args.force:
        print(f"Error: {CONFIG_FILE} already exists (use --force to overwrite).", file=sys.stderr)
        sys.exit(1)
    with open(CONFIG_FILE, "w") as f:
        json.dump(STARTER_CONFIG, f, indent=2)
    log(f"Created {CONFIG_FILE}")


def build_parser():
    parser = argparse.ArgumentParser(description="fepack - front-end asset packager")
    subparsers = parser.add_subparsers(dest="command")

    build = subparsers.add_parser("build", help="Bundle sources into one file")
    build.add_argument("sources", nargs="*", help="Files, URLs or literal text, in order")
    build.add_argument("-o", "--output", help="Destination file")
    build.add_argument("-c", "--config", help=f"JSON build file (default: {CONFIG_FILE} if present)")
    build.add_argument("--minify", action="store_true", help="Minify even when NODE_ENV is not production")
    build.add_argument("--watch", action="store_true", help="Rebuild when sources change")
    build.add_argument("--js", type=_json_arg, help="javascript-obfuscator options as JSON")
    build.add_argument("--css", type=_json_arg, help="clean-css options as JSON")
    build.add_argument("--request", type=_json_arg, help="Extra requests.get() arguments as JSON")
    build.add_argument("--verbose", action="store_true", help="Enable verbose output (sent to stderr)")

    init = subparsers.add_parser("init", help=f"Write a starter {CONFIG_FILE}")
    init.add_argument("--force", action="store_true")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "build": cmd_build(args)
    elif args.command == "init": cmd_init(args)
    else: parser.print_help()


if __name__ == "__main__":
    main()
