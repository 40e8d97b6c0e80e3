import argparse
import json
from datetime import datetime, timezone

import requests


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check(url: str, timeout: float, expect_envelope: bool = False) -> dict:
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException as exc:
        return {"url": url, "status_code": None, "ok": False, "error": str(exc)}

    ok = response.status_code < 400
    if ok and expect_envelope:
        try:
            ok = bool(response.json().get("success"))
        except ValueError:
            ok = False
    return {
        "url": url,
        "status_code": response.status_code,
        "ok": ok,
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="careflow post-deploy smoke test")
    parser.add_argument("--base-url", default="http://127.0.0.1:8000")
    parser.add_argument("--timeout", type=float, default=10.0)
    args = parser.parse_args()

    base = args.base_url.rstrip("/")
    results = [
        _check(f"{base}/ping", args.timeout),
        _check(f"{base}/health", args.timeout),
        _check(f"{base}/health/ready", args.timeout),
        _check(f"{base}/api/v1/visits", args.timeout, expect_envelope=True),
    ]
    ok = all(item["ok"] for item in results)
    report = {
        "checked_at": _utc_now_iso(),
        "base_url": base,
        "ok": ok,
        "results": results,
    }
    print(json.dumps(report, ensure_ascii=True))
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
