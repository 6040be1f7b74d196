"""Manual script to verify the fal.ai key works."""

from __future__ import annotations

import os
import time

import requests
from config.settings import load_config

config = load_config()  # 会读取 .env 并写入 os.environ

BASE_URL = config.queue_base_url
API_KEY = config.fal_key
MODEL = os.getenv("FAL_CHECK_MODEL", "fal-ai/fast-lightning-sdxl")

if not API_KEY:
    print("[error] FAL_KEY not set; check .env or environment variables.")
    raise SystemExit(1)

headers = {"Authorization": f"Key {API_KEY}", "Content-Type": "application/json"}

try:
    payload = {
        "prompt": "a small orange cat sitting on a windowsill",
        "image_size": "square",
        "num_inference_steps": 4,
        "enable_safety_checker": False,
    }
    submit = requests.post(f"{BASE_URL}/{MODEL}", headers=headers, json=payload, timeout=30)
    print("Submit status:", submit.status_code)
    if not submit.ok:
        print(submit.text[:500])
        raise SystemExit(1)

    job = submit.json()
    print("Request id:", job.get("request_id"))
    for _ in range(120):
        status = requests.get(job["status_url"], headers=headers, params={"logs": 1}, timeout=30)
        state = status.json().get("status")
        print("Status:", state)
        if state == "COMPLETED":
            break
        time.sleep(1)

    result = requests.get(job["response_url"], headers=headers, timeout=30)
    print("Result status:", result.status_code)
    print(result.text[:500])
except Exception as exc:  # noqa: BLE001
    print("[error]", exc)
    raise
