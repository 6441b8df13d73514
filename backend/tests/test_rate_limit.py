import pytest
from starlette.requests import Request

from futuresync.rate_limit import (
    LoginAttemptTracker, RateLimiter, RateLimitExceeded, RateLimitResult,
    get_client_ip, get_identifier, parse_window, validate_origin, validate_request_size,
)

class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

def make_request(headers=None, client=("10.0.0.1", 5000)):
    raw = [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()]
    return Request({"type": "http", "method": "GET", "path": "/", "headers": raw, "client": client})

@pytest.mark.parametrize("window,seconds", [
    ("15m", 900), ("1h", 3600), ("30s", 30), ("500ms", 0.5), ("1d", 86400), ("45", 45),
])
def test_parse_window(window, seconds):
    assert parse_window(window) == seconds

def test_parse_window_rejects_garbage():
    with pytest.raises(ValueError):
        parse_window("soon")

def test_fixed_window_allows_up_to_limit():
    limiter = RateLimiter(clock=FakeClock())
    results = [limiter.hit("1.2.3.4", 3, "1h") for _ in range(4)]
    assert [r.success for r in results] == [True, True, True, False]
    assert [r.remaining for r in results] == [2, 1, 0, 0]
    assert results[0].reset == results[3].reset

def test_window_expiry_starts_new_window():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    for _ in range(3):
        limiter.hit("ip", 3, "1m")
    assert not limiter.hit("ip", 3, "1m").success

    clock.now += 61
    result = limiter.hit("ip", 3, "1m")
    assert result.success
    assert result.remaining == 2

def test_same_identifier_different_windows_are_separate():
    limiter = RateLimiter(clock=FakeClock())
    limiter.hit("ip", 1, "1m")
    assert limiter.hit("ip", 1, "1h").success

def test_scopes_keep_separate_counters():
    limiter = RateLimiter(clock=FakeClock())
    request = make_request()
    config = {"requests": 1, "window": "1h", "identifier": "ip"}
    assert limiter.check(request, config, "reset_password").success
    assert not limiter.check(request, config, "reset_password").success
    assert limiter.check(request, config, "register").success
    assert set(limiter.store) == {"reset_password:10.0.0.1:1h", "register:10.0.0.1:1h"}

def test_hit_sweeps_expired_windows_periodically():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.hit("a", 5, "1m")
    clock.now += 120
    limiter.hit("b", 5, "1h")
    assert list(limiter.store) == ["b:1h"]

def test_cleanup_removes_expired_entries():
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    limiter.hit("a", 5, "1m")
    limiter.hit("b", 5, "1h")
    clock.now += 120
    assert limiter.cleanup() == 1
    assert list(limiter.store) == ["b:1h"]

def test_rate_limit_exceeded_headers():
    exc = RateLimitExceeded(RateLimitResult(False, 5, 0, 1_000_030.2), "Slow down")
    headers = exc.headers(now=1_000_000.0)
    assert headers["X-RateLimit-Limit"] == "5"
    assert headers["X-RateLimit-Remaining"] == "0"
    assert headers["X-RateLimit-Reset"] == str(int(1_000_030.2 * 1000))
    assert headers["Retry-After"] == "31"
    assert exc.message == "Slow down"

def test_client_ip_precedence():
    assert get_client_ip(make_request({
        "cf-connecting-ip": "1.1.1.1", "x-real-ip": "2.2.2.2", "x-forwarded-for": "3.3.3.3",
    })) == "1.1.1.1"
    assert get_client_ip(make_request({"x-real-ip": "2.2.2.2", "x-forwarded-for": "3.3.3.3"})) == "2.2.2.2"
    assert get_client_ip(make_request({"x-forwarded-for": "3.3.3.3, 4.4.4.4"})) == "3.3.3.3"
    assert get_client_ip(make_request()) == "10.0.0.1"
    assert get_client_ip(make_request(client=None)) == "unknown"

def test_identifier_kinds():
    request = make_request({"user-agent": "pytest-agent"})
    assert get_identifier(request, "ip") == "10.0.0.1"
    assert get_identifier(request, "user-agent") == "pytest-agent"
    assert get_identifier(request, "combined") == "10.0.0.1:pytest-agent"

def test_request_size_validation():
    assert validate_request_size(make_request())
    assert validate_request_size(make_request({"content-length": "1024"}), max_kb=1)
    assert not validate_request_size(make_request({"content-length": "1025"}), max_kb=1)
    assert not validate_request_size(make_request({"content-length": "lots"}))

def test_origin_validation():
    assert validate_origin(make_request({"host": "api.example.com"}))
    assert validate_origin(make_request({"host": "api.example.com", "origin": "https://api.example.com"}))
    assert not validate_origin(make_request({"host": "api.example.com", "origin": "https://evil.example"}))
    assert validate_origin(make_request({"host": "api.example.com", "referer": "http://api.example.com/page"}))
    assert not validate_origin(make_request({"host": "api.example.com", "referer": "not a url"}))

def test_login_attempt_tracker_locks_and_expires():
    clock = FakeClock()
    tracker = LoginAttemptTracker(max_attempts=3, window_minutes=15, clock=clock)
    for _ in range(2):
        tracker.record_failure("a@example.com:ip")
    assert not tracker.is_locked("a@example.com:ip")

    tracker.record_failure("a@example.com:ip")
    assert tracker.is_locked("a@example.com:ip")

    clock.now += 15 * 60 + 1
    assert not tracker.is_locked("a@example.com:ip")

def test_login_attempt_tracker_lockout_result():
    clock = FakeClock()
    tracker = LoginAttemptTracker(max_attempts=2, window_minutes=15, clock=clock)
    tracker.record_failure("key")
    assert tracker.lockout("key") is None

    clock.now += 60
    tracker.record_failure("key")
    result = tracker.lockout("key")
    assert not result.success
    assert (result.limit, result.remaining) == (2, 0)
    assert result.reset == 1_000_000.0 + 15 * 60

def test_login_attempt_tracker_clear():
    tracker = LoginAttemptTracker(max_attempts=1, clock=FakeClock())
    tracker.record_failure("key")
    tracker.clear("key")
    assert not tracker.is_locked("key")

def test_register_rate_limit_returns_429(client):
    for i in range(3):
        response = client.post("/auth/register", json={
            "email": f"user{i}@example.com", "password": "Str0ng!Passw0rd",
            "name": "User", "acceptTerms": True,
        })
        assert response.status_code == 201

    response = client.post("/auth/register", json={
        "email": "user4@example.com", "password": "Str0ng!Passw0rd",
        "name": "User", "acceptTerms": True,
    })
    assert response.status_code == 429
    body = response.json()
    assert body["code"] == "RATE_LIMITED"
    assert body["retryAfter"] > 0
    assert response.headers["X-RateLimit-Limit"] == "3"
    assert response.headers["X-RateLimit-Remaining"] == "0"
    assert "Retry-After" in response.headers

def test_reset_password_attempts_do_not_use_registration_budget(client):
    for _ in range(3):
        response = client.post("/auth/reset-password", json={"token": "bogus", "password": "Str0ng!Passw0rd"})
        assert response.status_code == 400

    response = client.post("/auth/register", json={
        "email": "fresh@example.com", "password": "Str0ng!Passw0rd",
        "name": "Fresh", "acceptTerms": True,
    })
    assert response.status_code == 201

def test_security_headers_on_responses(client):
    response = client.get("/")
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert "default-src 'self'" in response.headers["Content-Security-Policy"]
    assert "Strict-Transport-Security" not in response.headers

def test_invalid_origin_rejected(client):
    response = client.post(
        "/auth/register",
        json={"email": "x@example.com", "password": "Str0ng!Passw0rd", "name": "X", "acceptTerms": True},
        headers={"Origin": "https://evil.example"},
    )
    assert response.status_code == 403
    assert response.json()["code"] == "INVALID_ORIGIN"
