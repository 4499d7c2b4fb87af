# tasks/tests/__init__.py
"""
Task App Test Suite
===================

Modules:
--------
- test_recurrence: Recurrence expansion and the occurrence cache
- test_services: Task operations without the HTTP layer
- test_api: /api/v1/tasks/ and /api/v1/tags/ endpoints
- test_migrations: Data migration functions

Running Tests:
--------------
    python manage.py test tasks --settings=deskhome.settings_test
    python manage.py test tasks.tests.test_recurrence --settings=deskhome.settings_test
    pytest backend/tasks
"""
