# Overview: Pytest coverage for the flask CLI command groups.

from lrsync.models import PurchaseCategory, UserProfile
from lrsync.services.auth_service import verify_password


class TestSystemInit:
    def test_creates_super_admin_and_categories(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["system", "init", "--email", "Root@LRSync.test", "--password", "Password123!"])
        assert result.exit_code == 0, result.output
        assert "PASS Created super admin: root@lrsync.test" in result.output

        profile = db_session.query(UserProfile).one()
        assert profile.role == "super_admin"
        assert verify_password("Password123!", profile.password_hash)
        assert db_session.query(PurchaseCategory).count() == 4

    def test_second_run_reuses_super_admin(self, app, db_session, super_admin):
        result = app.test_cli_runner().invoke(args=["system", "init"])
        assert result.exit_code == 0, result.output
        assert f"Using existing super admin: {super_admin.email}" in result.output
        assert db_session.query(UserProfile).count() == 1

    def test_weak_password(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["system", "init", "--password", "weak"])
        assert result.exit_code != 0
        assert "at least 8 characters" in result.output


class TestUserCommands:
    def test_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create", "--email", "ana@lrsync.test", "--first-name", "Ana", "--last-name", "Cruz",
            "--area", "Cebu",
        ])
        assert result.exit_code == 0, result.output

        result = runner.invoke(args=["users", "list", "--role", "secretary"])
        assert "ana@lrsync.test" in result.output
        assert "area=Cebu" in result.output
        assert "login=no" in result.output

    def test_set_password_unknown_email(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["users", "set-password", "ghost@lrsync.test",
                                                    "--password", "Password123!"])
        assert result.exit_code != 0
        assert "No user with email" in result.output


class TestCategoryCommands:
    def test_add_and_list(self, app, db_session):
        runner = app.test_cli_runner()
        assert runner.invoke(args=["categories", "add", "Fuel"]).exit_code == 0
        result = runner.invoke(args=["categories", "list"])
        assert "Fuel" in result.output

    def test_cleanup_sessions(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["maintenance", "cleanup-sessions"])
        assert result.exit_code == 0
        assert "PASS Deleted 0 session tokens" in result.output
