#!/usr/bin/env python3
"""
kpatch.py - Human-readable patches for compiled Java archives.
Main CLI entry point: diffs and patches the Krakatau-disassembled text of the
classes inside a .jar/.zip instead of their raw bytes.
"""

import argparse
import sys

from kpatch_config import PatcherConfig, load_env
from kpatch_core import run_diff, run_patch
from kpatch_errors import Interrupted, KrakPatchError, UsageError

VERSION = "1.0.0"

DIFF_COMMANDS = ("diff", "d")
PATCH_COMMANDS = ("patch", "p")
HELP_COMMANDS = ("--help", "-h", "?", "\\?")


def usage_text(prog="kpatch"):
    return f"""Usage:
  {prog} diff [original-file] [edited-directory] > bundle.patch
  {prog} patch [original-file] bundle.patch > [output-file]

Options:
  [original-file]:
    Original ".jar" file.
  [edited-directory]:
    Directory with the edited files, same structure as the JAR when unziped.
  [output-file]:
    Patched ".jar" file.

Environment:
  VERBOSITY   0 = silent (default), 1 = errors, 2 = errors and progress
  KRAK_MODE   Krakatau disassembly mode (default: --roundtrip)
  DIFF_OPTS   diff options (default: -rNu)
  KRAK, DIFF, PATCH   Executables to use for krak2, diff and patch
"""


class _UsageParser(argparse.ArgumentParser):
    def error(self, message):
        raise UsageError(message)


def build_parser():
    parser = _UsageParser(
        prog="kpatch",
        description=f"kpatch v{VERSION} - diff/patch Java archives through their disassembly",
        add_help=False  # usage is printed by show_usage
    )
    parser.add_argument('command', nargs='?', default=None)
    parser.add_argument('operands', nargs='*')
    return parser


def show_usage(config, stream=None):
    if stream is None:
        if not config.shows_errors:
            return
        stream = sys.stderr
    print(usage_text(), file=stream)


def report_error(config, error: KrakPatchError):
    if config.shows_errors and str(error):
        print(f"Error:\n  {error}\n", file=sys.stderr)


def dispatch(args, config):
    command = args.command
    if command in DIFF_COMMANDS:
        if len(args.operands) != 2:
            raise UsageError(f"'{command}' takes an original file and an edited directory.")
        bundle_data = run_diff(args.operands[0], args.operands[1], config)
        sys.stdout.buffer.write(bundle_data)
        sys.stdout.flush()
        return 0
    if command in PATCH_COMMANDS:
        if len(args.operands) != 2:
            raise UsageError(f"'{command}' takes an original file and a bundle file.")
        archive_bytes = run_patch(args.operands[0], args.operands[1], config)
        sys.stdout.buffer.write(archive_bytes)
        sys.stdout.flush()
        return 0
    raise UsageError(f"Unknown command '{command}'." if command else "")


def main(argv=None):
    load_env()
    config = PatcherConfig.from_env()

    try:
        if argv is None:
            argv = sys.argv[1:]
        if argv and argv[0] in HELP_COMMANDS:
            show_usage(config, stream=sys.stdout)
            return 0

        args = build_parser().parse_args(argv)
        return dispatch(args, config)

    except KeyboardInterrupt:
        return Interrupted.exit_code
    except KrakPatchError as e:
        report_error(config, e)
        if e.show_usage:
            show_usage(config)
        return e.exit_code


if __name__ == "__main__":
    sys.exit(main())
