from __future__ import annotations

import sys

from .analysis_cli import main as analysis_main


def main(argv: list[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]
    return analysis_main(argv)


if __name__ == "__main__":
    raise SystemExit(main())
