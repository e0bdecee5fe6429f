"""
Smoke checks against a running clinic API server.
Run the API server first: python api_server.py
Then run this: python scripts/smoke_api.py
(needs a token from scripts/issue_token.py for a clinic-scoped owner)
"""

import json
import os

import requests

BASE_URL = os.getenv("API_BASE_URL", "http://localhost:8000")
API = f"{BASE_URL}/api/v1"


def _show(title, response):
    print("\n" + "=" * 50)
    print(f"CHECK: {title}")
    print("=" * 50)
    print(f"Status Code: {response.status_code}")
    print(f"Response: {json.dumps(response.json(), indent=2)}")


def check_health():
    response = requests.get(f"{BASE_URL}/health")
    _show("Health Check", response)
    return response.status_code == 200


def check_without_token():
    response = requests.get(f"{API}/treatments")
    _show("List Without Token", response)
    return response.status_code == 401


def check_treatment_lifecycle(headers):
    """Create a treatment, preview its fees, then delete it."""
    response = requests.post(
        f"{API}/treatments",
        headers=headers,
        json={
            "name": "Smoke Test Facial",
            "price": 1070,
            "includeVat": True,
            "doctorFee": {"amount": 10, "type": "percentage"},
            "assistantFee": {"amount": 50, "type": "fixed"},
        },
    )
    _show("Create Treatment", response)
    if response.status_code != 201:
        return False
    treatment_id = response.json()["data"]["treatment"]["id"]

    try:
        response = requests.post(
            f"{API}/treatments/{treatment_id}/calculate-fees",
            headers=headers,
            json={"doctorFee": {"amount": 20, "type": "percentage"}},
        )
        _show("Calculate Fees", response)
        calc = response.json()["data"]["calculations"]
        return response.status_code == 200 and calc["doctorFeeAmount"] == 200
    finally:
        response = requests.delete(f"{API}/treatments/{treatment_id}", headers=headers)
        _show("Delete Treatment", response)


def check_list(headers, resource):
    response = requests.get(f"{API}/{resource}", headers=headers, params={"limit": 5})
    _show(f"List {resource}", response)
    return response.status_code == 200


def main():
    print("=" * 50)
    print("Clinic API Smoke Checks")
    print("=" * 50)
    print(f"Base URL: {BASE_URL}")
    print("Make sure the API server is running!")
    print()

    token = os.getenv("API_TOKEN") or input("Enter a bearer token: ").strip()
    if not token:
        print("ERROR: a token is required")
        return
    headers = {"Authorization": f"Bearer {token}"}

    results = {}
    try:
        results["Health Check"] = check_health()
        results["Without Token"] = check_without_token()
        results["Treatment Lifecycle"] = check_treatment_lifecycle(headers)
        for resource in ("treatments", "diagnoses", "assistants"):
            results[f"List {resource}"] = check_list(headers, resource)
    except requests.RequestException as e:
        print(f"\n\nERROR: {e}")

    print("\n" + "=" * 50)
    print("SUMMARY")
    print("=" * 50)
    passed = sum(1 for v in results.values() if v)
    for name, result in results.items():
        status = "✓ PASS" if result else "✗ FAIL"
        print(f"{status}: {name}")
    print(f"\nTotal: {passed}/{len(results)} checks passed")
    print("=" * 50)


if __name__ == "__main__":
    main()
