"""Preview what a File source would put into its target ConfigMap."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any

import yaml

from configsync.filesystem.config_reader import read_config_files
from configsync.services.fingerprint import fingerprint


def build_manifest(name: str, namespace: str, content: dict[str, str]) -> dict[str, Any]:
    """Return the ConfigMap manifest a sync of content would produce."""
    return {
        "apiVersion": "v1",
        "kind": "ConfigMap",
        "metadata": {"name": name, "namespace": namespace},
        "data": dict(sorted(content.items())),
    }


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="configsync-preview",
        description="Show the keys and fingerprint a File source would produce",
    )
    parser.add_argument("path", help="File or directory to read")
    parser.add_argument("--manifest", metavar="NAME", help="Print a ConfigMap manifest named NAME")
    parser.add_argument(
        "--namespace", "-n", default="default", help="Namespace for --manifest (default: default)"
    )
    args = parser.parse_args(argv)

    try:
        content = read_config_files(Path(args.path))
    except (OSError, UnicodeDecodeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.manifest:
        manifest = build_manifest(args.manifest, args.namespace, content)
        print(yaml.safe_dump(manifest, sort_keys=False, default_flow_style=False), end="")
        return

    for key in sorted(content):
        print(f"  {key} ({len(content[key])} chars)")
    print(f"{len(content)} key(s), fingerprint {fingerprint(content)}")


if __name__ == "__main__":
    main()
