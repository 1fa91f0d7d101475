# smoke_api.py
"""
Call a running instance: health, convert, status, then an id that should 404.

Usage: python smoke_api.py <image-id> [<image-id> ...]
API_URL defaults to http://localhost:3000.
"""
import json
import os
import sys

import httpx
from dotenv import load_dotenv

load_dotenv()
API_URL = os.getenv("API_URL", "http://localhost:3000").rstrip("/")


def show(label, resp):
    print(f"{label}: HTTP {resp.status_code}")
    print(json.dumps(resp.json(), indent=2, ensure_ascii=False))


def main(image_ids):
    with httpx.Client(base_url=API_URL, timeout=600) as client:
        print("1) Health")
        show("health", client.get("/health"))

        if image_ids:
            print("\n2) Convert")
            show("convert", client.post("/convert", json={"imageIds": image_ids}))

            print("\n3) Status")
            show(f"status {image_ids[0]}", client.get(f"/status/{image_ids[0]}"))

        print("\n4) Unknown id")
        resp = client.post("/convert", json={"imageIds": ["invalid-id"]})
        if resp.status_code == 404:
            print("✅ 404 for unknown ids")
        else:
            show("❌ unexpected", resp)
            sys.exit(1)


if __name__ == "__main__":
    main(sys.argv[1:])
