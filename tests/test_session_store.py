"""
Unit tests for the broker SessionStore.

Covers id opacity, sliding expiry, permanent invalidity of expired ids,
and teardown helpers. Time is driven by an injected clock.
"""

from presence_avatar.broker import SESSION_TTL_SECONDS, SessionStore


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

class _Clock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _store(ttl: int = SESSION_TTL_SECONDS) -> tuple[SessionStore, _Clock]:
    clock = _Clock()
    return SessionStore(ttl_seconds=ttl, clock=clock), clock


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------

class TestCreate:
    """Session ids are opaque and unique."""

    def test_id_is_48_hex_chars(self):
        store, _ = _store()
        session_id = store.create("alice")
        assert len(session_id) == 48
        int(session_id, 16)

    def test_ids_are_unique(self):
        store, _ = _store()
        ids = {store.create() for _ in range(100)}
        assert len(ids) == 100
        assert len(store) == 100

    def test_expiry_is_ttl_from_now(self):
        store, clock = _store(ttl=60)
        session_id = store.create("alice")
        session = store.get(session_id)
        assert session.expires_at == clock.now + 60
        assert session.username == "alice"

    def test_default_ttl_is_one_day(self):
        assert SessionStore().ttl_seconds == 24 * 60 * 60


# ---------------------------------------------------------------------------
# Validate
# ---------------------------------------------------------------------------

class TestValidate:
    """validate() renews live sessions and purges expired ones."""

    def test_unknown_id_is_invalid(self):
        store, _ = _store()
        assert store.validate("nope") is False
        assert store.validate(None) is False
        assert store.validate("") is False

    def test_valid_id_slides_expiry(self):
        store, clock = _store(ttl=100)
        session_id = store.create()

        clock.advance(60)
        assert store.validate(session_id) is True
        assert store.get(session_id).expires_at == clock.now + 100

        # Would have expired without the renewal above
        clock.advance(60)
        assert store.validate(session_id) is True

    def test_expired_id_is_invalid_forever(self):
        store, clock = _store(ttl=100)
        session_id = store.create()

        clock.advance(100)
        assert store.validate(session_id) is False
        assert len(store) == 0

        clock.now = 0
        assert store.validate(session_id) is False

    def test_get_does_not_renew(self):
        store, clock = _store(ttl=100)
        session_id = store.create()
        clock.advance(50)
        store.get(session_id)
        clock.advance(50)
        assert store.get(session_id) is None


# ---------------------------------------------------------------------------
# Delete / purge / clear
# ---------------------------------------------------------------------------

class TestTeardown:
    def test_delete(self):
        store, _ = _store()
        session_id = store.create()
        assert store.delete(session_id) is True
        assert store.delete(session_id) is False
        assert store.validate(session_id) is False

    def test_delete_missing_id(self):
        store, _ = _store()
        assert store.delete(None) is False

    def test_purge_expired(self):
        store, clock = _store(ttl=100)
        old = store.create()
        clock.advance(60)
        fresh = store.create()
        clock.advance(50)

        assert store.purge_expired() == 1
        assert store.get(old) is None
        assert store.validate(fresh) is True

    def test_clear(self):
        store, _ = _store()
        store.create()
        store.create()
        store.clear()
        assert len(store) == 0
