from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta
import threading

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.database import Base
from app.errors import InvalidToken
from app.models.auth import RefreshSession
from app.models.user import User
from app.services import session_store, sessions
from app.services.passwords import get_password_hash
from app.services.tokens import generate_refresh_token


def _live_count(db, user_id: str) -> int:
    return db.query(RefreshSession).filter(
        RefreshSession.user_id == user_id,
        RefreshSession.revoked_at.is_(None),
    ).count()


def _user(db, username: str = "alice") -> User:
    user = User(
        name=username.title(),
        username=username,
        email=f"{username}@example.com",
        password_hash="not-a-real-hash",
    )
    db.add(user)
    db.commit()
    return user


def test_added_session_is_live(db):
    user = _user(db)
    token = generate_refresh_token()

    session_store.add_session(db, user.id, token)
    db.commit()

    assert session_store.has_session(db, user.id, token)
    assert session_store.find_session_owner(db, token) == user.id


def test_tokens_are_stored_hashed(db):
    user = _user(db)
    token = generate_refresh_token()

    session_store.add_session(db, user.id, token)
    db.commit()

    stored = db.query(RefreshSession).one()
    assert stored.token_hash != token
    assert len(stored.token_hash) == 64


def test_remove_session_consumes_exactly_once(db):
    user = _user(db)
    token = generate_refresh_token()
    session_store.add_session(db, user.id, token)
    db.commit()

    assert session_store.remove_session(db, user.id, token) is not None
    assert session_store.remove_session(db, user.id, token) is None
    db.commit()

    assert not session_store.has_session(db, user.id, token)


def test_remove_absent_token_is_a_noop(db):
    user = _user(db)
    kept = generate_refresh_token()
    session_store.add_session(db, user.id, kept)
    db.commit()

    assert session_store.remove_session(db, user.id, "never-issued") is None
    assert session_store.has_session(db, user.id, kept)


def test_remove_is_scoped_to_the_owner(db):
    alice = _user(db, "alice")
    bob = _user(db, "bob")
    token = generate_refresh_token()
    session_store.add_session(db, alice.id, token)
    db.commit()

    assert session_store.remove_session(db, bob.id, token) is None
    assert session_store.has_session(db, alice.id, token)


def test_clear_sessions_revokes_every_session_of_the_user(db):
    alice = _user(db, "alice")
    bob = _user(db, "bob")
    alice_tokens = [generate_refresh_token() for _ in range(3)]
    bob_token = generate_refresh_token()
    for token in alice_tokens:
        session_store.add_session(db, alice.id, token)
    session_store.add_session(db, bob.id, bob_token)
    db.commit()

    assert session_store.clear_sessions(db, alice.id) == 3
    db.commit()

    assert _live_count(db, alice.id) == 0
    assert all(not session_store.has_session(db, alice.id, token) for token in alice_tokens)
    assert session_store.has_session(db, bob.id, bob_token)


def test_expired_session_cannot_be_consumed(db):
    user = _user(db)
    token = generate_refresh_token()
    session = session_store.add_session(db, user.id, token)
    session.expires_at = (datetime.utcnow() - timedelta(seconds=1)).isoformat()
    db.commit()

    assert not session_store.has_session(db, user.id, token)
    assert session_store.remove_session(db, user.id, token) is None


def test_session_cap_evicts_oldest(db, monkeypatch):
    monkeypatch.setattr(session_store.get_settings(), "max_sessions_per_user", 2)
    user = _user(db)
    issued = [generate_refresh_token() for _ in range(3)]
    for index, token in enumerate(issued):
        session = session_store.add_session(db, user.id, token)
        # Deterministic ordering regardless of clock resolution.
        session.created_at = (datetime(2000, 1, 1) + timedelta(minutes=index)).isoformat()
        db.flush()
    db.commit()

    assert _live_count(db, user.id) == 2
    assert not session_store.has_session(db, user.id, issued[0])
    assert session_store.has_session(db, user.id, issued[1])
    assert session_store.has_session(db, user.id, issued[2])


def test_session_cap_never_evicts_the_new_session(db, monkeypatch):
    monkeypatch.setattr(session_store.get_settings(), "max_sessions_per_user", 1)
    user = _user(db)
    existing = generate_refresh_token()
    session = session_store.add_session(db, user.id, existing)
    # Sorts as newer than anything issued now.
    session.created_at = "2999-01-01T00:00:00"
    db.flush()

    fresh = generate_refresh_token()
    session_store.add_session(db, user.id, fresh)
    db.commit()

    assert session_store.has_session(db, user.id, fresh)
    assert not session_store.has_session(db, user.id, existing)


def test_concurrent_refreshes_consume_token_once(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'race.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    SessionFactory = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    setup = SessionFactory()
    try:
        user = User(
            name="Alice",
            username="alice",
            email="alice@example.com",
            password_hash=get_password_hash("P@ss1"),
        )
        setup.add(user)
        setup.commit()
        user_id = user.id
        _, tokens = sessions.login(setup, "alice", "P@ss1")
    finally:
        setup.close()

    start = threading.Barrier(8)

    def attempt() -> str:
        db = SessionFactory()
        try:
            start.wait()
            sessions.refresh(db, tokens.refresh_token, user_id)
            return "ok"
        except InvalidToken:
            return "invalid"
        finally:
            db.close()

    try:
        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(lambda _: attempt(), range(8)))
    finally:
        engine.dispose()

    assert sorted(outcomes) == ["invalid"] * 7 + ["ok"]
