"""
Simple simulator: register a parcel, send a few soil readings to the API and
verify each one by its content identifier.
Run:
    AGRITRUST_API=http://localhost:8000 python scripts/simulate_sensor.py
"""
import os
import time
import uuid
import random
import requests

API = os.getenv("AGRITRUST_API", "http://localhost:8000")


def main():
    land_id = "LAND-SIM"
    r = requests.post(f"{API}/api/land", json={
        "id": land_id,
        "name": "Simulator Plot",
        "crop": "Maize",
        "ownerId": "farmer-sim",
    })
    print("land:", r.status_code, r.text)

    for i in range(5):
        body = {
            "landId": land_id,
            "cropType": "Maize",
            "soilMoisture": round(random.uniform(25, 45), 2),
            "temperature": round(random.uniform(9, 18), 2),
            "phLevel": round(random.uniform(5.8, 7.2), 2),
            "humidity": round(random.uniform(75, 95), 2),
            "cid": f"bafy-sim-{uuid.uuid4().hex[:12]}",
            "producerId": "farmer-sim",
        }
        rr = requests.post(f"{API}/api/records", json=body)
        print("reading", i, rr.status_code, rr.text)
        if rr.ok:
            vv = requests.get(f"{API}/api/records/verify", params={"cid": body["cid"]})
            print("  verify:", vv.status_code, vv.json().get("valid"))
        time.sleep(1)

    rr = requests.post(f"{API}/api/records", json={
        "kind": "weather_reading",
        "landId": land_id,
        "temperature": 11.2,
        "humidity": 89.0,
        "rainfall": 3.4,
        "cid": f"bafy-sim-{uuid.uuid4().hex[:12]}",
        "producerId": "farmer-sim",
    })
    print("weather:", rr.status_code, rr.text)


if __name__ == "__main__":
    main()
