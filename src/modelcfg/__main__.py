from __future__ import annotations

import argparse
import sys
from pathlib import Path

from modelcfg.app import run_app


def main() -> None:
    p = argparse.ArgumentParser(
        prog="modelcfg",
        description="Feature bitstream compiler (device model + attributes -> BIT/WORD/DETAIL/TCL/BIN)",
    )
    p.add_argument(
        "--model",
        type=Path,
        action="append",
        default=[],
        help="Device model file (YAML or JSON); repeat for several devices",
    )

    # Execution controls
    p.add_argument("--cfg", type=Path, help="Path to a semicolon/newline-separated script, e.g. a TCL output file")
    p.add_argument("--cmd", type=str, default="", help='Semicolon-separated commands, e.g. "set_model -feature f top; write -format BIT out.bit"')
    p.add_argument("--shell", action="store_true", help="Start interactive shell after running scripts")

    # Logging
    p.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    p.add_argument("--quiet", action="store_true", help="Reduce console output")
    p.add_argument("--log-file", type=Path, help="Also write the log to this file")

    args = p.parse_args()

    rc = run_app(
        model_paths=args.model,
        cfg=args.cfg,
        cmd=args.cmd,
        shell=args.shell,
        log_level=args.log_level,
        quiet=args.quiet,
        log_file=args.log_file,
    )
    sys.exit(rc)


if __name__ == "__main__":
    main()
