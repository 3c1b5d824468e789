#!/usr/bin/env python3
"""Point a form type at a newly published form id.

The previous id stays resolvable through the registry history, so
notifications for submissions made on the old form keep being accepted.

Usage
-----
    python scripts/remap_form.py --registry forms.json emissions 5716093
    python scripts/remap_form.py --registry forms.json --show
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from jobtrack.config import JobTrackConfig
from jobtrack.exceptions import JobTrackConfigError
from jobtrack.models.forms import FormType
from jobtrack.registry.forms import FormVersionRegistry


def _print_registry(registry: FormVersionRegistry) -> None:
    for form_type, entry in registry.to_dict().items():
        print(f"{form_type:<10} current={entry['current']}")
        if entry["history"]:
            print(f"{'':<10} history={', '.join(entry['history'])}")


def main() -> int:
    config = JobTrackConfig.from_env()

    parser = argparse.ArgumentParser(description="Remap a form type to a new form id.")
    parser.add_argument(
        "--registry",
        type=Path,
        default=config.form_versions_path,
        help="Registry JSON file (default: $JOBTRACK_FORM_VERSIONS_PATH)",
    )
    parser.add_argument("--show", action="store_true", help="Print the registry and exit")
    parser.add_argument("form_type", nargs="?", choices=[ft.value for ft in FormType])
    parser.add_argument("new_id", nargs="?", help="Newly published form id")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.registry is None:
        parser.error("--registry is required when JOBTRACK_FORM_VERSIONS_PATH is not set")

    try:
        if args.registry.exists():
            registry = FormVersionRegistry.from_file(args.registry, max_history=config.max_form_history)
        else:
            registry = FormVersionRegistry(max_history=config.max_form_history)

        if args.show:
            _print_registry(registry)
            return 0
        if not args.form_type or not args.new_id:
            parser.error("form_type and new_id are required unless --show is given")

        registry.remap(FormType(args.form_type), args.new_id)
        registry.save(args.registry)
    except JobTrackConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    _print_registry(registry)
    return 0


if __name__ == "__main__":
    sys.exit(main())
