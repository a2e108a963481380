import pytest


@pytest.fixture(autouse=True)
def _disable_security_redirects(settings):
    # Prevent SecurityMiddleware from forcing https://testserver/...
    settings.SECURE_SSL_REDIRECT = False
    settings.SESSION_COOKIE_SECURE = False
    settings.CSRF_COOKIE_SECURE = False
    settings.SECURE_HSTS_SECONDS = 0


@pytest.fixture(autouse=True)
def _audit_defaults(settings):
    # Tests rely on the shipped defaults, not on whatever .env provides
    settings.AUDIT_SAMPLE_ID_PREFIX = "AS"
    settings.AUDIT_CAPABILITY = "audit"
    settings.AUDIT_MANAGER_RIGHT = "manage_samples"
    settings.AUDIT_PURGE_DRAFT_ON_COMPLETE = True
    settings.AUDIT_FATAL_ANSWERS = ["No", "Failed", "Missing"]
    settings.AUDIT_FAILING_ANSWERS = ["No", "Failed"]
