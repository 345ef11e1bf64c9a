# prep/tests/test_api.py
import datetime as dt
from datetime import timedelta

import pytest
from django.utils import timezone
from pytest import approx
from rest_framework.test import APIClient

from prep.models import Profile, ScoreHistory, StudySession

URL = "/api/sessions"


def payload(user_id, **kw):
    body = {
        "user_id": user_id,
        "subject": "Medicine",
        "correct_questions": 8,
        "total_questions": 10,
        "difficulty": "medium",
        "confidence": "high",
        "guess_percent": 0,
        "time_taken": 45,
        "type": "mock",
    }
    body.update(kw)
    return body


def _post_session(c, user_id, **kw):
    r = c.post(URL, payload(user_id, **kw), format="json")
    assert r.status_code in (200, 201), r.content
    return r.json()


def _backdate(session_id, days):
    StudySession.objects.filter(pk=session_id).update(
        created_at=timezone.now() - timedelta(days=days)
    )


@pytest.mark.django_db
def test_create_session_returns_scores_and_refreshes_projection():
    c = APIClient()
    r = c.post(URL, payload("u-new"), format="json")
    assert r.status_code == 201
    obj = r.json()
    assert obj["user_id"] == "u-new"
    assert obj["subject"] == "Medicine"
    assert obj["accuracy"] == 80.0
    assert obj["score"] == approx(115.2, abs=0.01)
    assert obj["prediction_score"] == approx(11.27, abs=0.01)
    assert obj["created_at"].endswith("Z")

    profile = Profile.objects.get(user_id="u-new")
    assert profile.prediction_score == obj["prediction_score"]
    assert ScoreHistory.objects.filter(user_id="u-new").count() == 1


@pytest.mark.django_db
@pytest.mark.parametrize("overrides,field", [
    ({"correct_questions": 11}, "correct_questions"),
    ({"total_questions": 0}, "total_questions"),
    ({"correct_questions": -1}, "correct_questions"),
    ({"guess_percent": 7}, "guess_percent"),
    ({"guess_percent": 105}, "guess_percent"),
    ({"time_taken": 0}, "time_taken"),
    ({"subject": "Astrology"}, "subject"),
    ({"difficulty": "brutal"}, "difficulty"),
    ({"confidence": "sure"}, "confidence"),
    ({"type": "quiz"}, "type"),
])
def test_invalid_sessions_are_rejected(overrides, field):
    c = APIClient()
    r = c.post(URL, payload("u-bad", **overrides), format="json")
    assert r.status_code == 400
    assert field in r.json()
    assert StudySession.objects.filter(user_id="u-bad").count() == 0


@pytest.mark.django_db
def test_missing_fields_are_rejected():
    c = APIClient()
    body = payload("u-missing")
    del body["total_questions"]
    del body["user_id"]
    r = c.post(URL, body, format="json")
    assert r.status_code == 400
    assert "total_questions" in r.json()
    assert "user_id" in r.json()


@pytest.mark.django_db
def test_idempotent_create_success_and_replay():
    c = APIClient()
    body = payload("u-idem", idempotency_key="idem-1")

    r1 = c.post(URL, body, format="json")
    assert r1.status_code == 201
    r2 = c.post(URL, body, format="json")
    assert r2.status_code == 200
    assert r2.json()["id"] == r1.json()["id"]
    assert StudySession.objects.filter(user_id="u-idem").count() == 1
    # replay does not append history
    assert ScoreHistory.objects.filter(user_id="u-idem").count() == 1


@pytest.mark.django_db
def test_idempotency_key_from_header():
    c = APIClient()
    body = payload("u-idem-h")
    r1 = c.post(URL, body, format="json", HTTP_IDEMPOTENCY_KEY="hdr-1")
    r2 = c.post(URL, body, format="json", HTTP_IDEMPOTENCY_KEY="hdr-1")
    assert (r1.status_code, r2.status_code) == (201, 200)
    assert r1.json()["idempotency_key"] == "hdr-1"


@pytest.mark.django_db
def test_idempotent_conflict_same_key_different_payload_409():
    c = APIClient()
    base = payload("u-idem-conf", idempotency_key="idem-x")
    assert c.post(URL, base, format="json").status_code == 201

    r = c.post(URL, dict(base, correct_questions=9), format="json")
    assert r.status_code == 409
    assert "Idempotency-Key reused" in r.json().get("detail", "")


@pytest.mark.django_db
def test_without_key_every_post_creates_a_session():
    c = APIClient()
    _post_session(c, "u-twice")
    _post_session(c, "u-twice")
    assert StudySession.objects.filter(user_id="u-twice").count() == 2


@pytest.mark.django_db
def test_list_sessions_with_filters_and_sort():
    c = APIClient()
    s1 = _post_session(c, "u-list", subject="Surgery", correct_questions=5)
    s2 = _post_session(c, "u-list", subject="Anatomy", correct_questions=9, type="practice")
    _post_session(c, "u-other")

    r = c.get("/api/users/u-list/sessions")
    assert r.status_code == 200
    data = r.json()
    assert data["count"] == 2
    assert [s["id"] for s in data["results"]] == [s2["id"], s1["id"]]

    r = c.get("/api/users/u-list/sessions?sort=score-asc")
    assert [s["id"] for s in r.json()["results"]] == [s1["id"], s2["id"]]

    r = c.get("/api/users/u-list/sessions?type=practice&subject=all")
    assert [s["id"] for s in r.json()["results"]] == [s2["id"]]

    r = c.get("/api/users/u-list/sessions?subject=Surgery")
    assert [s["id"] for s in r.json()["results"]] == [s1["id"]]


@pytest.mark.django_db
@pytest.mark.parametrize("qs", ["sort=best", "subject=Astrology", "type=quiz"])
def test_list_sessions_rejects_bad_params(qs):
    c = APIClient()
    r = c.get(f"/api/users/u-list/sessions?{qs}")
    assert r.status_code == 400
    assert "detail" in r.json()


@pytest.mark.django_db
def test_delete_session_recomputes_prediction_score():
    c = APIClient()
    keep = _post_session(c, "u-del", subject="Surgery", correct_questions=10)
    gone = _post_session(c, "u-del", subject="Medicine")
    before = Profile.objects.get(user_id="u-del").prediction_score

    r = c.delete(f"/api/users/u-del/sessions/{gone['id']}")
    assert r.status_code == 204
    assert not StudySession.objects.filter(pk=gone["id"]).exists()

    after = Profile.objects.get(user_id="u-del").prediction_score
    assert after < before
    assert after == approx(keep["prediction_score"], abs=0.01)


@pytest.mark.django_db
def test_session_detail_is_scoped_to_owner():
    c = APIClient()
    s = _post_session(c, "u-owner")

    assert c.get(f"/api/users/u-owner/sessions/{s['id']}").status_code == 200
    assert c.get(f"/api/users/u-thief/sessions/{s['id']}").status_code == 404
    assert c.delete(f"/api/users/u-thief/sessions/{s['id']}").status_code == 404
    assert StudySession.objects.filter(pk=s["id"]).exists()


@pytest.mark.django_db
def test_dashboard_for_new_user_is_empty():
    c = APIClient()
    r = c.get("/api/users/u-nobody/dashboard")
    assert r.status_code == 200
    data = r.json()
    assert data["prep_score"] == 0.0
    assert data["session_count"] == 0
    assert data["subjects"] == []
    assert len(data["trend"]) == 7
    assert data["message"] == "Start tracking your progress by adding sessions!"
    assert data["recent_sessions"] == []


@pytest.mark.django_db
def test_dashboard_scores_subjects_trend_and_recent_sessions():
    c = APIClient()
    for i in range(6):
        _post_session(c, "u-dash", subject="Medicine" if i % 2 else "Surgery")
    old = _post_session(c, "u-dash", subject="ENT", correct_questions=1, type="practice")
    _backdate(old["id"], 3)

    r = c.get("/api/users/u-dash/dashboard?days=5&tz=Asia/Tokyo")
    assert r.status_code == 200
    data = r.json()

    assert data["session_count"] == 7
    assert data["tz"] == "Asia/Tokyo"
    assert [s["subject"] for s in data["subjects"]] == ["Medicine", "Surgery", "ENT"]
    medicine = data["subjects"][0]
    assert medicine["count"] == 3
    assert medicine["weight"] == 15
    assert medicine["score"] == approx(69.12, abs=0.01)
    assert medicine["band"] == "good"

    assert len(data["trend"]) == 5
    assert data["trend"][-1]["sessions"] == 6
    assert data["trend"][-1]["score"] == approx(115.2, abs=0.01)
    assert sum(p["sessions"] for p in data["trend"]) == 7

    assert len(data["recent_sessions"]) == 5
    assert all(s["subject"] != "ENT" for s in data["recent_sessions"])
    assert "ENT" in data["message"]


@pytest.mark.django_db
@pytest.mark.parametrize("qs", ["tz=Mars/Olympus", "days=0", "days=abc", "days=1000"])
def test_dashboard_rejects_bad_params(qs):
    c = APIClient()
    r = c.get(f"/api/users/u-dash/dashboard?{qs}")
    assert r.status_code == 400
    assert "detail" in r.json()


@pytest.mark.django_db
def test_profile_lifecycle():
    c = APIClient()
    assert c.get("/api/users/u-prof/profile").status_code == 404

    r = c.patch("/api/users/u-prof/profile", {"nickname": "Doc", "email": "doc@example.com"}, format="json")
    assert r.status_code == 200
    assert r.json()["display_name"] == "Doc"

    _post_session(c, "u-prof")
    data = c.get("/api/users/u-prof/profile").json()
    assert data["nickname"] == "Doc"
    assert data["email"] == "doc@example.com"
    assert data["prediction_score"] == approx(11.27, abs=0.01)


@pytest.mark.django_db
def test_profile_cannot_overwrite_prediction_score_and_validates_email():
    c = APIClient()
    r = c.patch("/api/users/u-prof2/profile", {"prediction_score": 100}, format="json")
    assert r.status_code == 200
    assert r.json()["prediction_score"] == 0.0

    r = c.patch("/api/users/u-prof2/profile", {"email": "not-an-email"}, format="json")
    assert r.status_code == 400
    assert "email" in r.json()


@pytest.mark.django_db
def test_score_history_newest_first():
    c = APIClient()
    _post_session(c, "u-hist", correct_questions=2)
    _post_session(c, "u-hist", correct_questions=10)

    r = c.get("/api/users/u-hist/score-history")
    assert r.status_code == 200
    results = r.json()["results"]
    assert len(results) == 2
    assert results[0]["score"] > results[1]["score"]


@pytest.mark.django_db
def test_leaderboard_ranks_live_scores_and_reports_current_user():
    c = APIClient()
    _post_session(c, "u-top", correct_questions=10, difficulty="hard")
    _post_session(c, "u-mid", correct_questions=5)
    c.patch("/api/users/u-idle/profile", {"nickname": "Idle"}, format="json")
    c.patch("/api/users/u-mid/profile", {"email": "mid@example.com"}, format="json")

    r = c.get("/api/leaderboard?user_id=u-mid")
    assert r.status_code == 200
    data = r.json()
    assert data["current_user_rank"] == 2
    entries = data["entries"]
    assert [e["user_id"] for e in entries] == ["u-top", "u-mid", "u-idle"]
    assert [e["rank"] for e in entries] == [1, 2, 3]
    assert entries[1]["display_name"] == "mid"
    assert entries[1]["is_current_user"] is True
    assert entries[2]["score"] == 0.0


@pytest.mark.django_db
def test_leaderboard_applies_decay():
    c = APIClient()
    old = _post_session(c, "u-old", correct_questions=10)
    _post_session(c, "u-fresh", correct_questions=9)
    _backdate(old["id"], 60)

    entries = c.get("/api/leaderboard").json()["entries"]
    assert [e["user_id"] for e in entries] == ["u-fresh", "u-old"]
    assert c.get("/api/leaderboard").json()["current_user_rank"] is None
