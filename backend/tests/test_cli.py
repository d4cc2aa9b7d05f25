# Overview: Pytest coverage for the Flask CLI command groups.

from bizledger.models import Organization, User


class TestCli:

    def test_system_init_is_idempotent(self, app, db_session):
        runner = app.test_cli_runner()

        first = runner.invoke(args=["system", "init", "--org", "Main", "--org-code", "MAIN"])
        second = runner.invoke(args=["system", "init", "--org", "Main", "--org-code", "MAIN"])

        assert first.exit_code == 0, first.output
        assert second.exit_code == 0, second.output
        assert "Using existing organization" in second.output
        assert db_session.query(Organization).filter_by(code="MAIN").count() == 1
        assert db_session.query(User).filter_by(username="admin").count() == 1

    def test_create_user_and_issue_token(self, app, db_session, org_a):
        runner = app.test_cli_runner()

        created = runner.invoke(args=[
            "users", "create", "--org-id", str(org_a.id), "--username", "bia",
            "--role", "seller", "--commission-bps", "450",
        ])
        assert created.exit_code == 0, created.output
        user = db_session.query(User).filter_by(username="bia").one()
        assert user.default_commission_rate_bps == 450

        issued = runner.invoke(args=["users", "token", "--org-id", str(org_a.id), "--username", "bia"])
        assert issued.exit_code == 0, issued.output
        token = issued.output.strip().splitlines()[-1]
        assert len(token) == 64

    def test_orgs_create_rejects_duplicate_code(self, app, db_session, org_a):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["orgs", "create", "--name", "Again", "--code", org_a.code])
        assert "already exists" in result.output

    def test_inventory_verify(self, app, db_session, org_a, widget_a):
        runner = app.test_cli_runner()

        ok = runner.invoke(args=["inventory", "verify"])
        assert ok.exit_code == 0, ok.output
        assert "PASS" in ok.output

        widget_a.quantity_on_hand = 3
        db_session.commit()
        bad = runner.invoke(args=["inventory", "verify", "--org-id", str(org_a.id)])
        assert bad.exit_code != 0
        assert f"product={widget_a.id}" in bad.output
