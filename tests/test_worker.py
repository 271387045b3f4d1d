from datetime import timedelta

from recipehub import worker
from recipehub.core.clock import utcnow
from recipehub.models import PushToken, Session as UserSession
from recipehub.services import auth_service, notification_service


def test_run_once_purges_expired_rows(user, db_session):
    auth_service.open_session(db_session, user)
    auth_service.open_session(db_session, user)
    expired = db_session.query(UserSession).first()
    expired.expires_at = utcnow() - timedelta(seconds=1)

    token = notification_service.register_push_token(db_session, user.id, "old-device")
    token.last_used_at = utcnow() - timedelta(days=45)
    notification_service.register_push_token(db_session, user.id, "new-device")
    db_session.commit()

    assert worker.run_once(db_session) == {"sessions": 1, "push_tokens": 1}

    db_session.expire_all()
    assert db_session.query(UserSession).count() == 1
    assert [t.token for t in db_session.query(PushToken)] == ["new-device"]


def test_run_once_with_nothing_to_do(db_session):
    assert worker.run_once(db_session) == {"sessions": 0, "push_tokens": 0}
