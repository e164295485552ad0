from __future__ import annotations

import json
from pathlib import Path
import sys
from urllib.parse import urlencode


def _read_payload() -> dict:
    raw = sys.stdin.read().strip()
    if not raw:
        return {}
    try:
        data = json.loads(raw)
        if isinstance(data, dict):
            return data
        return {}
    except json.JSONDecodeError:
        return {}


def _emit(status_code: int, payload: dict) -> None:
    print(json.dumps({"status": status_code, "json": payload}))


def main() -> int:
    if len(sys.argv) < 2:
        print("missing action", file=sys.stderr)
        return 2

    action = sys.argv[1]
    payload = _read_payload()

    workspace_root = Path(__file__).resolve().parent.parent
    if str(workspace_root) not in sys.path:
        sys.path.insert(0, str(workspace_root))

    from hangar_booking.web_app import CUSTOMER_HEADER, create_app

    app = create_app("data")
    client = app.test_client()
    headers = {CUSTOMER_HEADER: str(payload.get("customer_id", ""))}

    if action == "resources":
        filters = {key: payload[key] for key in ("search", "category", "kind", "max_price", "sort_by") if payload.get(key)}
        response = client.get(f"/api/resources?{urlencode(filters)}")
        _emit(response.status_code, response.get_json() or {})
        return 0

    if action == "quote":
        response = client.post("/api/bookings/quote", json=payload)
        _emit(response.status_code, response.get_json() or {})
        return 0

    if action == "book":
        response = client.post("/api/bookings", json=payload, headers=headers)
        _emit(response.status_code, response.get_json() or {})
        return 0

    if action == "cancel":
        booking_id = str(payload.get("booking_id", ""))
        response = client.patch(f"/api/bookings/{booking_id}/cancel", headers=headers)
        _emit(response.status_code, response.get_json() or {})
        return 0

    print(f"unsupported action: {action}", file=sys.stderr)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
