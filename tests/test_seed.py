from grocery_pos.models import Category, SystemSettings, User
from grocery_pos.seed import DEFAULT_CATEGORIES


def test_seed_defaults_is_idempotent(app):
    runner = app.test_cli_runner()
    assert "seeded" in runner.invoke(args=["seed-defaults"]).output
    runner.invoke(args=["seed-defaults"])

    with app.app_context():
        assert Category.query.count() == len(DEFAULT_CATEGORIES)
        assert SystemSettings.query.count() == 1


def test_create_superadmin_command(app):
    runner = app.test_cli_runner()
    args = ["create-superadmin", "--username", "root", "--email", "Root@Example.com", "--password", "rootpass"]

    result = runner.invoke(args=args)
    assert result.exit_code == 0
    assert "Superadmin root created." in result.output

    with app.app_context():
        user = User.query.filter_by(username="root").one()
        assert user.role == "superadmin"
        assert user.email == "root@example.com"
        assert user.is_active

    again = runner.invoke(args=args)
    assert again.exit_code != 0
    assert "already exists" in again.output
