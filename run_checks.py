"""
Smoke check against the mock DB: submit a report, then triage it as an admin.

Usage: USE_MOCK_DB=true python run_checks.py
"""

from fastapi.testclient import TestClient
from app.main import app

report = {"type": "Fire", "description": "Smoke check", "location": {"lat": 14.6, "lng": 121.0}}

with TestClient(app) as client:
    print('ROOT:')
    print(client.get('/').json())

    print('\nHEALTH:')
    print(client.get('/health').json())

    print('\nSUBMIT:')
    created = client.post('/reports', json=report)
    print(created.status_code, created.json())

    print('\nCOOLDOWN:')
    print(client.get('/reports/cooldown').json())

    print('\nADMIN REPORTS:')
    print(client.get('/admin/reports').json())

    if created.status_code == 201:
        print('\nRESOLVE:')
        print(client.post(f"/admin/reports/{created.json()['id']}/resolve").json())

    print('\nDEVICES:')
    print(client.get('/admin/devices').json())
