"""CLI entrypoint for llm-tui."""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from importlib import metadata
from pathlib import Path

from .app import LlmTuiApp
from .config import ensure_config_dir


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llm-tui",
        description="llm-tui - Terminal chat client for hosted LLM models",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print version and exit",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path of the JSON file holding the credential and model",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        help="Path of the TOML settings file",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Ensure configuration exists, handle CLI flags, and run the TUI."""

    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    if args.version:
        try:
            version = metadata.version("llm-tui")
        except metadata.PackageNotFoundError:
            version = "0.0.0"
        print(f"llm-tui {version}")
        return

    ensure_config_dir()
    app = LlmTuiApp(config_path=args.config, settings_path=args.settings)
    app.run()


if __name__ == "__main__":
    main()
