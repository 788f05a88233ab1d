"""Export the FastAPI-generated OpenAPI document for the insight API.

Usage:
    python scripts/export_openapi.py                 # writes openapi.json at repo root
    python scripts/export_openapi.py --out docs/api.json
"""

import argparse
import json
from pathlib import Path

from main import app

DEFAULT_PATH = Path(__file__).resolve().parent.parent / "openapi.json"


def main():
    parser = argparse.ArgumentParser(description="Export the OpenAPI document")
    parser.add_argument("--out", type=Path, default=DEFAULT_PATH, help="Output file")
    args = parser.parse_args()

    document = app.openapi()
    args.out.parent.mkdir(parents=True, exist_ok=True)
    args.out.write_text(json.dumps(document, indent=2, ensure_ascii=False) + "\n")
    print(f"Wrote {args.out} ({len(document.get('paths', {}))} paths)")


if __name__ == "__main__":
    main()
