import requests
import json

BASE_URL = "http://127.0.0.1:8000"

# --- smoke payload ---
payload = {
    "destination": "Kyoto, Japan",
    "userPreferences": (
        "I want to experience authentic Japanese culture in Kyoto, especially "
        "traditional crafts and local cuisine."
    ),
    "tasteProfile": "",
    "useBehavioralProfile": True,
}

def run_smoke():
    url = f"{BASE_URL}/api/recommendations"
    headers = {"Content-Type": "application/json"}

    print(f"➡️ Sending POST {url}")
    print(json.dumps(payload, indent=2))

    resp = requests.post(url, headers=headers, json=payload)

    print(f"\n⬅️ Status: {resp.status_code}")
    try:
        data = resp.json()
        print(json.dumps(data, indent=2, ensure_ascii=False))
    except ValueError:
        print(resp.text)

if __name__ == "__main__":
    run_smoke()
