"""
Services layer - business logic goes here, NOT in routes.

- store.py: Firestore gateway (reads, atomic batches, subscriptions)
- submission_service.py: public intake with cooldown and block checks
- report_view.py / device_view.py: live admin views over subscriptions
- status_workflow.py: admin state machine
- map_service.py: map markers
"""
