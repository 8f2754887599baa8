"""UserManager (users file) and Session."""

import pytest

from booklog.auth import DEFAULT_ADMIN_PASSWORD, DEFAULT_ADMIN_USERNAME, Session, UserManager, hash_password
from booklog.models import Role, User


@pytest.fixture
def users_path(tmp_path):
    return tmp_path / "data" / "users.txt"


def test_missing_file_creates_default_admin(users_path):
    mgr = UserManager(users_path)
    assert users_path.exists()
    admin = mgr.authenticate(DEFAULT_ADMIN_USERNAME, DEFAULT_ADMIN_PASSWORD)
    assert admin is not None
    assert admin.is_admin
    assert users_path.read_text() == f"admin|{hash_password('admin')}|ADMIN\n"


def test_authenticate_rejects_bad_password(users_path):
    mgr = UserManager(users_path)
    assert mgr.authenticate("admin", "wrong") is None
    assert mgr.authenticate("nobody", "admin") is None
    assert mgr.authenticate(None, None) is None


def test_register_and_reload(users_path):
    mgr = UserManager(users_path)
    assert mgr.register_user(" alice ", "secret") is True
    assert mgr.register_user("alice", "other") is False

    reloaded = UserManager(users_path)
    alice = reloaded.authenticate("alice", "secret")
    assert alice is not None
    assert alice.role is Role.USER
    assert reloaded.user_exists("alice")
    assert {u.username for u in reloaded.all_users()} == {"admin", "alice"}


@pytest.mark.parametrize(("username", "password"), [
    ("", "pw"),
    ("   ", "pw"),
    ("bob", ""),
    ("bo|b", "pw"),
    ("guest", "pw"),
    ("GUEST", "pw"),
])
def test_register_rejects_invalid(users_path, username, password):
    mgr = UserManager(users_path)
    with pytest.raises(ValueError):
        mgr.register_user(username, password)


def test_parses_file_leniently(users_path):
    users_path.parent.mkdir(parents=True)
    users_path.write_text(
        "# accounts\n"
        f"root|{hash_password('pw')}|admin\n"
        f"carol|{hash_password('pw')}|SUPERUSER\n"
        "broken line\n"
        f"|{hash_password('pw')}|USER\n"
    )
    mgr = UserManager(users_path)
    assert mgr.get_user("root").is_admin
    assert mgr.get_user("carol").role is Role.USER
    assert not mgr.user_exists("admin")
    assert len(mgr.all_users()) == 2


def test_file_without_admin_gets_one(users_path):
    users_path.parent.mkdir(parents=True)
    users_path.write_text(f"dave|{hash_password('pw')}|USER\n")
    mgr = UserManager(users_path)
    assert mgr.get_user("admin").is_admin
    assert mgr.get_user("dave") is not None
    assert "admin|" in users_path.read_text()


class TestSession:
    def test_starts_logged_out(self):
        s = Session()
        assert not s.is_logged_in
        assert not s.can_store_data
        assert s.username == "guest"

    def test_guest_can_read_only(self):
        s = Session()
        s.guest()
        assert s.is_logged_in
        assert not s.is_admin
        assert not s.can_store_data
        assert s.username == "guest"

    def test_login_logout(self):
        s = Session()
        s.login(User("root", "h", Role.ADMIN))
        assert s.is_admin
        assert s.can_store_data
        s.logout()
        assert s.user is None
