#!/usr/bin/env python3
"""Fetch the OFAC SDN list and write the sanctioned address snapshot.

Usage:
    python update_sanctions.py
    python update_sanctions.py --schema advanced --input sdn_advanced.xml
"""

import argparse
import json
import logging
import os
import pathlib
import sys
import tempfile
from datetime import datetime, timezone

import requests

from sdn_extract import (
    LOOSE_KEYWORDS,
    SCHEMAS,
    STRICT_KEYWORDS,
    FetchError,
    SanctionsListError,
    extract_addresses,
)

DEFAULT_SCHEMA = "basic"
DEFAULT_OUTPUT = pathlib.Path("data/sanctioned-addresses.json")
DEFAULT_TIMEOUT = 60
USER_AGENT = "sanctioned-addresses-updater/1.0"

logger = logging.getLogger(__name__)


def parse_arguments(argv=None):
    parser = argparse.ArgumentParser(
        description='Build a JSON snapshot of the digital currency addresses on the OFAC SDN list.')

    parser.add_argument('--schema', choices=sorted(SCHEMAS), default=DEFAULT_SCHEMA,
                        help=f'Layout of the source XML (default: {DEFAULT_SCHEMA})')

    parser.add_argument('--input', dest='input', type=pathlib.Path, default=None,
                        help='Read a downloaded XML file instead of fetching the list')

    parser.add_argument('-o', '--output', dest='output', type=pathlib.Path,
                        default=DEFAULT_OUTPUT,
                        help=f'Snapshot path (default: {DEFAULT_OUTPUT})')

    parser.add_argument('--timeout', type=float, default=DEFAULT_TIMEOUT,
                        help=f'Download timeout in seconds (default: {DEFAULT_TIMEOUT})')

    parser.add_argument('--loose-match', dest='loose', action='store_true',
                        help='Also treat "crypto", "virtual currency" and "wallet" identifier types as addresses')

    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log every skipped identifier')

    return parser.parse_args(argv)


def fetch_document(url, timeout=DEFAULT_TIMEOUT):
    """Download the sanctions document.

    Returns:
        bytes: the raw response body

    Raises:
        FetchError: on connection errors, timeouts and non-2xx responses
    """
    logger.info("Fetching %s", url)
    try:
        response = requests.get(url, timeout=timeout, headers={"User-Agent": USER_AGENT})
        response.raise_for_status()
    except requests.RequestException as e:
        raise FetchError(f"Failed to download {url}: {e}") from e

    logger.info("Received %.2f MB", len(response.content) / 1024 / 1024)
    return response.content


def build_snapshot(result, schema, url, now=None):
    addresses = result.to_mapping()
    if now is None:
        now = datetime.now(timezone.utc)
    return {
        "metadata": {
            "lastUpdated": now.isoformat(),
            "source": schema.source,
            "totalAddresses": len(addresses),
            "url": url,
        },
        "addresses": addresses,
    }


def write_snapshot(snapshot, path):
    """Replace ``path`` with the snapshot.

    The JSON is written to a temporary file in the same directory first, so
    an interrupted run never leaves a partial snapshot behind.
    """
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as out:
            json.dump(snapshot, out, indent=2, ensure_ascii=False)
            out.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        os.unlink(tmp_name)
        raise


def log_result(result, verbose=False):
    stats = result.stats
    logger.info("Entities processed: %d (%d failed)", stats.entities_processed, stats.entities_failed)
    logger.info("Address identifiers matched: %d, accepted: %d, rejected: %d",
                stats.candidates_matched, stats.addresses_accepted, stats.candidates_rejected)
    logger.info("Unique addresses: %d", stats.unique_addresses)

    for diagnostic in result.diagnostics:
        level = logging.WARNING if diagnostic.level == "error" else logging.DEBUG
        logger.log(level, "entry #%s (uid %s): %s", diagnostic.index, diagnostic.uid, diagnostic.message)

    if verbose:
        for address, records in result.addresses.items():
            for record in records:
                logger.debug("Found %s (%s) for %s [%s]", address, record.type, record.entity, record.program)

        logger.debug("Identifier types seen:")
        for id_type in stats.id_types:
            logger.debug("- %s", id_type)


def run(schema_name=DEFAULT_SCHEMA, input_path=None, output=DEFAULT_OUTPUT,
        timeout=DEFAULT_TIMEOUT, loose=False, verbose=False):
    """Fetch (or read), extract and write one snapshot.

    Returns:
        dict: the snapshot that was written
    """
    schema = SCHEMAS[schema_name]
    keywords = LOOSE_KEYWORDS if loose else STRICT_KEYWORDS

    if input_path is not None:
        logger.info("Reading %s", input_path)
        text = pathlib.Path(input_path).read_bytes()
        url = str(input_path)
    else:
        url = schema.url
        text = fetch_document(url, timeout)

    result = extract_addresses(text, schema, keywords)
    log_result(result, verbose)

    snapshot = build_snapshot(result, schema, url)
    write_snapshot(snapshot, output)
    return snapshot


def main(argv=None):
    args = parse_arguments(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        snapshot = run(args.schema, args.input, args.output, args.timeout, args.loose, args.verbose)
    except SanctionsListError as e:
        logger.error("%s", e)
        return 1
    except OSError as e:
        logger.error("Failed to read or write the snapshot: %s", e)
        return 1

    print(f"Successfully wrote {snapshot['metadata']['totalAddresses']} addresses to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
