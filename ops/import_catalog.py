from __future__ import annotations

import argparse
import base64
import json
import os
import sys
from typing import Any

import urllib.request
import urllib.error


DEFAULT_BASE_URL = os.getenv("FLORIFY_BASE_URL", "http://localhost:8000")
DEFAULT_ADMIN_KEY = os.getenv("INTERNAL_ADMIN_KEY", "")

DEFAULT_TIMEOUT_SECONDS = 60


def http_post(url: str, payload: dict[str, Any], admin_key: str, user_id: str | None) -> dict[str, Any]:
    data = json.dumps(payload).encode("utf-8")
    headers = {
        "Content-Type": "application/json",
        "X-Internal-Admin-Key": admin_key,
    }
    if user_id:
        headers["X-User-Id"] = user_id
    req = urllib.request.Request(url=url, data=data, method="POST", headers=headers)
    try:
        with urllib.request.urlopen(req, timeout=DEFAULT_TIMEOUT_SECONDS) as resp:
            raw = resp.read().decode("utf-8")
            return json.loads(raw) if raw else {}
    except urllib.error.HTTPError as e:
        body = ""
        try:
            body = e.read().decode("utf-8")
        except OSError:
            body = ""
        print(f"HTTP {e.code} {e.reason} for {url}", file=sys.stderr)
        if body:
            print(body, file=sys.stderr)
        return {"error": {"status": e.code, "reason": e.reason, "body": body}}
    except urllib.error.URLError as e:
        print(f"Network error for {url}: {e}", file=sys.stderr)
        return {"error": {"reason": str(e)}}


def _read_barcodes(path: str | None) -> list[str] | None:
    if not path:
        return None
    with open(path, "r", encoding="utf-8") as f:
        return [line.strip() for line in f if line.strip()]


def main() -> int:
    p = argparse.ArgumentParser(description="Import the CVH product catalog (analyze/apply).")
    p.add_argument("--file", required=True, help="path to ';'-separated csv export")
    p.add_argument("--base-url", default=DEFAULT_BASE_URL)
    p.add_argument("--admin-key", default=DEFAULT_ADMIN_KEY)
    p.add_argument("--user-id", help="operator id recorded on the import batch")
    p.add_argument("--mode", choices=["analyze", "apply"], default="analyze")
    p.add_argument("--only-new", help="file with one codbarra per line; restricts new rows")
    p.add_argument("--only-changed", help="file with one codbarra per line; restricts changed rows")
    p.add_argument("--yes", action="store_true", help="required for apply mode (safety)")
    args = p.parse_args()

    if not args.admin_key:
        print("Missing INTERNAL_ADMIN_KEY (env) or --admin-key", file=sys.stderr)
        return 2

    if args.mode == "apply" and not args.yes:
        print("Refusing to apply without --yes (safety).", file=sys.stderr)
        return 2

    if not args.file.lower().endswith(".csv"):
        print("Only .csv files can be imported.", file=sys.stderr)
        return 2

    try:
        with open(args.file, "rb") as f:
            raw = f.read()
        selected_new = _read_barcodes(args.only_new)
        selected_changed = _read_barcodes(args.only_changed)
    except (OSError, UnicodeDecodeError) as e:
        print(f"Failed to read input: {e}", file=sys.stderr)
        return 2

    # original bytes, so the server archives exactly what was exported
    body: dict[str, Any] = {
        "filename": os.path.basename(args.file),
        "content_base64": base64.b64encode(raw).decode("ascii"),
    }
    if selected_new is not None:
        body["selected_new"] = selected_new
    if selected_changed is not None:
        body["selected_changed"] = selected_changed

    endpoint = f"{args.base_url.rstrip('/')}/v1/admin/catalog/imports:{args.mode}"
    resp = http_post(endpoint, body, args.admin_key, args.user_id)
    print(json.dumps(resp, indent=2, ensure_ascii=False))
    return 0 if "error" not in resp else 1


if __name__ == "__main__":
    raise SystemExit(main())
