from types import SimpleNamespace
from urllib.parse import parse_qs, urlparse

import pytest

from app.auth.access_gate import (
    ADMIN_SIGN_IN,
    DECLINED_PAGE,
    PENDING_PAGE,
    RESIDENT_SIGN_IN,
    Admitted,
    Forbidden,
    ForbiddenReason,
    Unauthenticated,
    Unresolved,
    destination_for,
    evaluate,
)
from app.auth.dependencies import outcome_to_http
from app.core.config import settings
from app.models.records import UserProfile

from conftest import admin, resident


def session(uid="u1", profile=None, resolved=True, profile_loaded=True):
    return SimpleNamespace(resolved=resolved, uid=uid, profile=profile, profile_loaded=profile_loaded)


def test_unresolved_before_provider_answers():
    assert evaluate(session(resolved=False), destination_for("/announcements")) == Unresolved()


def test_unresolved_until_first_profile_snapshot():
    outcome = evaluate(session(profile_loaded=False), destination_for("/dashboard"))
    assert isinstance(outcome, Unresolved)


def test_signed_out_goes_to_area_sign_in_with_return_path():
    assert evaluate(session(uid=None), destination_for("/feedback")) == Unauthenticated(RESIDENT_SIGN_IN, "/feedback")
    assert evaluate(session(uid=None), destination_for("/admin/voting")) == Unauthenticated(ADMIN_SIGN_IN, "/admin/voting")


def test_signed_out_wins_over_everything_else():
    outcome = evaluate(session(uid=None, profile=admin()), destination_for("/admin/dashboard"))
    assert isinstance(outcome, Unauthenticated)


def test_resident_in_admin_area_is_a_role_mismatch():
    outcome = evaluate(session(profile=resident()), destination_for("/admin/residents"))
    assert outcome == Forbidden(ForbiddenReason.ROLE_MISMATCH, ADMIN_SIGN_IN)


def test_missing_profile_in_admin_area_is_a_role_mismatch():
    outcome = evaluate(session(profile=None), destination_for("/admin/dashboard"))
    assert outcome.reason == ForbiddenReason.ROLE_MISMATCH


def test_admin_is_admitted_to_admin_area():
    outcome = evaluate(session(profile=admin()), destination_for("/admin/analytics"))
    assert outcome == Admitted(destination_for("/admin/analytics"))


@pytest.mark.parametrize("status", ["pending", "mystery", None])
def test_unverified_statuses_are_held_on_pending_page(status):
    outcome = evaluate(session(profile=resident(status=status)), destination_for("/vote"))
    assert outcome == Forbidden(ForbiddenReason.PENDING, PENDING_PAGE)


def test_missing_profile_on_verified_page_is_pending():
    outcome = evaluate(session(profile=None), destination_for("/events"))
    assert outcome.reason == ForbiddenReason.PENDING


def test_declined_carries_reason():
    profile = resident(status="declined", declineReason="Proof is unreadable")
    outcome = evaluate(session(profile=profile), destination_for("/emergency-alerts"))
    assert outcome == Forbidden(ForbiddenReason.DECLINED, DECLINED_PAGE, "Proof is unreadable")


def test_declined_resident_can_still_open_open_pages():
    profile = resident(status="declined", declineReason="x")
    assert isinstance(evaluate(session(profile=profile), destination_for("/announcements")), Admitted)
    assert isinstance(evaluate(session(profile=profile), destination_for(DECLINED_PAGE)), Admitted)


def test_verified_resident_is_admitted():
    profile = UserProfile.model_validate({**resident(), "id": "u1"})
    assert isinstance(evaluate(session(profile=profile), destination_for("/dashboard")), Admitted)


def test_unknown_destination_is_rejected():
    with pytest.raises(KeyError):
        destination_for("/secret")


# ----- HTTP rendering of outcomes -----

def test_admitted_renders_nothing():
    assert outcome_to_http(Admitted(destination_for("/profile"))) is None


def test_unresolved_renders_retryable_503():
    error = outcome_to_http(Unresolved())
    assert error.status_code == 503
    assert "Retry-After" in error.headers


def test_sign_in_redirect_remembers_target():
    error = outcome_to_http(Unauthenticated(RESIDENT_SIGN_IN, "/feedback"))
    location = urlparse(error.headers["Location"])

    assert error.status_code == 302
    assert error.headers["Location"].startswith(settings.FRONTEND_URL)
    assert location.path == RESIDENT_SIGN_IN
    assert parse_qs(location.query) == {"next": ["/feedback"]}


def test_declined_redirect_includes_reason():
    error = outcome_to_http(Forbidden(ForbiddenReason.DECLINED, DECLINED_PAGE, "Blurry photo"))
    location = urlparse(error.headers["Location"])

    assert location.path == DECLINED_PAGE
    assert parse_qs(location.query) == {"reason": ["Blurry photo"]}


def test_denials_do_not_explain_themselves():
    error = outcome_to_http(Forbidden(ForbiddenReason.ROLE_MISMATCH, ADMIN_SIGN_IN))
    assert error.status_code == 302
    assert error.headers["Location"] == f"{settings.FRONTEND_URL}{ADMIN_SIGN_IN}"
