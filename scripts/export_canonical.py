#!/usr/bin/env python3
# scripts/export_canonical.py
import argparse
import json
import logging
import os
import sys
from pathlib import Path

from canonical_export import compile_export, publish_export
from db_mnemonic import get_engine
from errors import StoreError


def main():
    ap = argparse.ArgumentParser(description='Write the canonical mnemonic export as JSON')
    ap.add_argument('-o', '--output', help='Output file (default: stdout)')
    ap.add_argument('--record', action='store_true', help='Also store the snapshot as an export version')
    ap.add_argument('--created-by', help='User id recorded on the export version')
    ap.add_argument('--indent', type=int, default=2)
    args = ap.parse_args()

    logging.basicConfig(
        level=os.getenv('MNEMONIC_LOG_LEVEL', 'INFO'),
        format='%(asctime)s | %(levelname)s | %(name)s | %(message)s',
        stream=sys.stderr,
    )

    engine = get_engine()
    try:
        if args.record:
            version_id, document = publish_export(created_by=args.created_by, engine=engine)
            print(f'Recorded export version {version_id}', file=sys.stderr)
        else:
            document = compile_export(engine=engine)
    except StoreError as e:
        print(f'Export failed: {e}', file=sys.stderr)
        sys.exit(1)

    payload = json.dumps(document, indent=args.indent, ensure_ascii=False)
    if args.output:
        Path(args.output).write_text(payload + '\n', encoding='utf-8')
        print(f'Wrote {len(document["books"])} books to {args.output}', file=sys.stderr)
    else:
        print(payload)


if __name__ == '__main__':
    main()
