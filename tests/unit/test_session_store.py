from datetime import timedelta

from styleguides_site.services.auth.session_store import SessionStore, generate_token


def test_generate_token_has_requested_length():
    assert len(generate_token(32)) == 32
    assert generate_token(32) != generate_token(32)


def test_create_session_sets_thirty_day_expiry(session_store, clock, make_user):
    session_id = session_store.create_session(make_user())

    session = session_store.get_session(session_id)
    assert session is not None
    assert len(session_id) == 32
    assert session.user_id == "user-1"
    assert abs((session.expires_at - clock()) - timedelta(days=30)) <= timedelta(seconds=1)


def test_expired_session_is_removed_on_access(session_store, clock, make_user):
    session_id = session_store.create_session(make_user())

    clock.advance(days=30, seconds=1)

    assert session_store.get_session(session_id) is None
    assert len(session_store) == 0


def test_session_still_valid_just_before_expiry(session_store, clock, make_user):
    session_id = session_store.create_session(make_user())

    clock.advance(days=29, hours=23)

    assert session_store.get_session(session_id) is not None


def test_unknown_or_empty_session_id(session_store):
    assert session_store.get_session("missing") is None
    assert session_store.get_session("") is None


def test_delete_session_is_idempotent(session_store, make_user):
    session_id = session_store.create_session(make_user())

    session_store.delete_session(session_id)
    session_store.delete_session(session_id)

    assert session_store.get_session(session_id) is None


def test_refresh_session_extends_expiry(session_store, clock, make_user):
    session_id = session_store.create_session(make_user())
    clock.advance(days=10)

    assert session_store.refresh_session(session_id) is True
    assert session_store.get_session(session_id).expires_at == clock() + timedelta(days=30)
    assert session_store.refresh_session("missing") is False


def test_csrf_token_round_trip(session_store, make_user):
    session_id = session_store.create_session(make_user())
    token = session_store.generate_csrf_token()
    session_store.store_csrf_token(session_id, token)

    assert session_store.validate_csrf_token(session_id, token) is True
    assert session_store.validate_csrf_token(session_id, "wrong") is False
    assert session_store.validate_csrf_token("missing", token) is False


def test_csrf_validation_fails_without_stored_token(session_store, make_user):
    session_id = session_store.create_session(make_user())

    assert session_store.validate_csrf_token(session_id, "anything") is False


def test_cleanup_expired_sessions_counts_removed(session_store, clock, make_user):
    session_store.create_session(make_user(id="a"))
    session_store.create_session(make_user(id="b"))
    clock.advance(days=20)
    fresh = session_store.create_session(make_user(id="c"))
    clock.advance(days=11)

    assert session_store.cleanup_expired_sessions() == 2
    assert len(session_store) == 1
    assert session_store.get_session(fresh) is not None


def test_update_user_replaces_snapshot_in_all_sessions(session_store, make_user):
    first = session_store.create_session(make_user())
    second = session_store.create_session(make_user())
    session_store.create_session(make_user(id="other"))

    updated = session_store.update_user(make_user(email_verified=True))

    assert updated == 2
    assert session_store.get_session(first).user.email_verified is True
    assert session_store.get_session(second).user.email_verified is True


def test_custom_ttl(clock, make_user):
    store = SessionStore(ttl=timedelta(minutes=5), clock=clock)
    session_id = store.create_session(make_user())

    clock.advance(minutes=6)

    assert store.get_session(session_id) is None
