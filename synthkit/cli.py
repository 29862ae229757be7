from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import configure_logging, default_config, load_config
from .document import build_tree, load_document
from .errors import DocumentError, NodeValidationError, ResolutionError, SynthesisError, TreeError
from .synth import synthesize

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NOT_FOUND = 2
EXIT_INVALID = 3
EXIT_SYNTH_FAILED = 4


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="synthkit", description="Synthesize a tree document")
    parser.add_argument("document", help="Path to a YAML tree document")
    parser.add_argument("--env", help="Configuration environment (loads config/<env>.yml)")
    parser.add_argument("--config-dir", help="Directory holding <env>.yml configuration files")
    parser.add_argument("--format", choices=["json", "yaml"], default="json", help="Output format")
    parser.add_argument("--strict", action="store_true", help="Fail on warnings")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.env, config_dir=args.config_dir) if args.env else default_config()
    except FileNotFoundError as exc:
        print(str(exc))
        return EXIT_NOT_FOUND
    except ValidationError as exc:
        print(f"Invalid configuration: {exc}")
        return EXIT_INVALID

    configure_logging(config.logging, verbose=args.verbose)
    logger.debug(f"Using configuration for environment {config.environment}")
    if args.strict:
        config.synthesis.fail_on_warnings = True

    path = Path(args.document)
    if not path.exists():
        print(f"File not found: {path}")
        return EXIT_NOT_FOUND

    try:
        document = load_document(path)
        root = build_tree(
            document,
            default_account=config.aws.account,
            default_region=config.aws.region,
        )
    except (DocumentError, TreeError) as exc:
        print(f"Invalid document: {exc}")
        return EXIT_INVALID

    try:
        result = synthesize(root, config.synthesis)
    except (ResolutionError, NodeValidationError, SynthesisError) as exc:
        print(f"Synthesis failed: {exc}")
        return EXIT_SYNTH_FAILED

    manifest = result.to_manifest()
    if args.format == "yaml":
        print(yaml.safe_dump(manifest, sort_keys=False))
    else:
        print(json.dumps(manifest, indent=2, default=str))
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
