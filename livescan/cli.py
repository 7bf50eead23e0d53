import argparse
import logging
import sys
from pathlib import Path

from .analysis.live_variables import analyze_module
from .intermediate_representation.cfg import StructuralError
from .parsing.parser import IRParseError, parse_file
from .reporting.dot import render_cfg_dot
from .reporting.json_report import render_json_report
from .reporting.text import render_text_report

logger = logging.getLogger("livescan")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="livescan",
        description="Live variable analysis for LLVM-style textual IR",
    )

    parser.add_argument(
        "--file",
        required=True,
        type=Path,
        help="Path to the IR file (.ll)"
    )

    parser.add_argument(
        "--function",
        action="append",
        dest="functions",
        metavar="NAME",
        help="Only analyze this function (repeatable; default: all definitions)"
    )

    parser.add_argument(
        "--format",
        choices=["text", "dot", "json"],
        default="text",
        help="Report format"
    )

    parser.add_argument(
        "--output",
        type=Path,
        help="Write the report here instead of stdout"
    )

    parser.add_argument(
        "--stderr",
        action="store_true",
        help="Write the report to stderr, alongside the log"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
        help="Logging verbosity (logs go to stderr)"
    )
    return parser


def run(args: argparse.Namespace) -> str:
    module = parse_file(args.file)
    results = analyze_module(module, args.functions)
    logger.info("analyzed %d function(s) from %s", len(results), args.file)

    if args.format == "json":
        return render_json_report(results)
    if args.format == "dot":
        return "".join(render_cfg_dot(result) for result in results)
    return render_text_report(results)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if not args.file.exists():
        logger.error("file not found: %s", args.file)
        return 2
    try:
        report = run(args)
    except (IRParseError, StructuralError) as exc:
        logger.error("%s: %s", args.file, exc)
        return 2
    except (ValueError, OSError) as exc:
        logger.error("%s", exc)
        return 2

    if args.output is not None:
        args.output.write_text(report, encoding="utf-8")
    elif args.stderr:
        sys.stderr.write(report)
    else:
        sys.stdout.write(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
