#!/usr/bin/env python3
"""
Smoke test a running AAELink API against real MinIO.

Walks the whole file lifecycle over HTTP:
upload -> fetch signed URL -> direct upload via presigned PUT ->
download -> delete (twice, deletes of missing keys succeed).

Usage:
    python scripts/smoke_test.py --base-url http://localhost:8000

Requires:
    - a running server (uvicorn aaelink.main:app)
    - .env file (or environment) with API_KEYS set
"""

import os
import sys
import uuid

import httpx
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


def check(label: str, ok: bool, detail: str = "") -> bool:
    marker = "[OK]" if ok else "[ERR]"
    print(f"{marker} {label}" + (f": {detail}" if detail and not ok else ""))
    return ok


def run_smoke_test(base_url: str, api_key: str) -> bool:
    """Run every step; returns True only if all of them pass."""
    headers = {"X-API-Key": api_key, "X-User-Id": f"smoke-{uuid.uuid4().hex[:8]}"}
    payload = b"hello"
    results = []

    with httpx.Client(base_url=base_url, headers=headers, timeout=30.0) as client:
        response = client.get("/health/ready")
        results.append(check("readiness", response.status_code == 200, response.text))

        response = client.post(
            "/api/v1/files/upload",
            files={"file": ("greeting.txt", payload, "text/plain")},
        )
        if not check("upload through API", response.status_code == 201, response.text):
            return False
        uploaded = response.json()
        key = uploaded["key"]
        results.append(check("etag returned", bool(uploaded["etag"])))

        # Signed URLs are fetched without our API headers
        fetched = httpx.get(uploaded["url"], timeout=30.0)
        results.append(check(
            "signed URL returns payload",
            fetched.status_code == 200 and fetched.content == payload,
            f"status={fetched.status_code}",
        ))
        results.append(check(
            "signed URL keeps content type",
            fetched.headers.get("content-type", "").startswith("text/plain"),
            fetched.headers.get("content-type", ""),
        ))

        response = client.post(
            "/api/v1/files/upload-url",
            json={"filename": "direct.bin", "mime_type": "application/octet-stream", "size": 4},
        )
        if check("presigned upload URL", response.status_code == 200, response.text):
            urls = response.json()
            direct_payload = b"\x00\x01\x02\x03"
            put = httpx.put(
                urls["upload_url"],
                content=direct_payload,
                headers={"Content-Type": "application/octet-stream"},
                timeout=30.0,
            )
            results.append(check("direct PUT", put.status_code == 200, f"status={put.status_code}"))
            got = httpx.get(urls["download_url"], timeout=30.0)
            results.append(check(
                "direct upload round-trips",
                got.status_code == 200 and got.content == direct_payload,
                f"status={got.status_code}",
            ))
            client.delete("/api/v1/files", params={"key": urls["key"]})
        else:
            results.append(False)

        response = client.get("/api/v1/files/url", params={"key": "missing-key", "expires_in": 60})
        results.append(check("signing a missing key succeeds", response.status_code == 200, response.text))
        if response.status_code == 200:
            missing = httpx.get(response.json()["url"], timeout=30.0)
            results.append(check("missing key fetch is 404", missing.status_code == 404, f"status={missing.status_code}"))

        for attempt in ("first", "second"):
            response = client.delete("/api/v1/files", params={"key": key})
            results.append(check(f"{attempt} delete", response.status_code == 204, response.text))

    passed = sum(1 for r in results if r)
    print(f"\n=== Smoke Test Complete ===")
    print(f"Passed: {passed}/{len(results)}")

    return all(results)


def main():
    import argparse

    parser = argparse.ArgumentParser(description='Smoke test the AAELink file API')
    parser.add_argument('--base-url', default='http://localhost:8000', help='API base URL')
    parser.add_argument('--api-key', default=None, help='API key (defaults to first of API_KEYS)')
    args = parser.parse_args()

    api_key = args.api_key or os.environ.get("API_KEYS", "dev-key-1").split(",")[0].strip()

    try:
        success = run_smoke_test(args.base_url, api_key)
    except httpx.HTTPError as e:
        print(f"ERROR talking to {args.base_url}: {e}")
        success = False

    sys.exit(0 if success else 1)


if __name__ == '__main__':
    main()
