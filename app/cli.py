import click
from flask import current_app
from flask.cli import with_appcontext
from sqlalchemy import func
from app.extensions import db
from app.models.user import User, ROLE_USER, ROLE_ADMIN, ROLE_CHOICES
from app.models.project import Project
from app.models.feedback import Feedback
from app.services import analysis

DEMO_FEEDBACK = (
    {
        "title": "Кнопка входу не працює на мобільних пристроях",
        "description": 'При натисканні на кнопку "Увійти" на телефоні нічого не відбувається. Проблема спостерігається в Safari.',
        "category": "bug",
        "severity": "high",
        "coordinates": {"x": 150, "y": 200, "viewport_width": 390, "viewport_height": 844},
    },
    {
        "title": "Додати темну тему",
        "description": "Було б чудово мати можливість перемкнутися на темну тему для роботи вночі.",
        "category": "feature",
        "severity": "medium",
        "coordinates": {"x": 300, "y": 100, "viewport_width": 1440, "viewport_height": 900},
    },
    {
        "title": "Сторінка довго завантажується",
        "description": "Головна сторінка завантажується повільно, зображення з'являються із затримкою.",
        "category": "performance",
        "severity": None,
        "coordinates": None,
    },
)

def _find_user(email: str):
    return db.session.execute(
        db.select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()

def _get_or_create_user(email, password, first_name, last_name, role):
    user = _find_user(email)
    if user:
        return user, False
    user = User(email=email.strip().lower(), first_name=first_name, last_name=last_name, role=role, is_active=True)
    user.set_password(password)
    db.session.add(user)
    db.session.flush()
    return user, True

@click.command("seed")
@click.option("--admin-email", default="admin@clientfeedbackhub.com", show_default=True)
@click.option("--admin-password", default="Admin123!", show_default=True)
@click.option("--user-email", default="test@example.com", show_default=True)
@click.option("--user-password", default="Test123!", show_default=True)
@with_appcontext
def seed(admin_email, admin_password, user_email, user_password):
    """Admin, demo user and a demo project with analysed feedback (idempotent)."""
    # Seeding should not sit through simulated analysis latency
    current_app.config.update(AI_MOCK_DELAY_MIN=0.0, AI_MOCK_DELAY_MAX=0.0)

    admin, admin_new = _get_or_create_user(admin_email, admin_password, "Admin", "User", ROLE_ADMIN)
    user, user_new = _get_or_create_user(user_email, user_password, "Test", "User", ROLE_USER)

    project = db.session.execute(
        db.select(Project).where(Project.name == "Demo Project", Project.owner_id == user.id)
    ).scalar_one_or_none()
    created_feedback = 0
    if project is None:
        project = Project(
            name="Demo Project",
            description="Демонстраційний проєкт для тестування Client Feedback Hub",
            url="https://example.com",
            owner_id=user.id,
        )
        db.session.add(project)
        db.session.flush()

        for row in DEMO_FEEDBACK:
            fb = Feedback(
                project_id=project.id,
                title=row["title"],
                description=row["description"],
                category=row["category"],
                coordinates=row["coordinates"],
                author_id=user.id,
                author_email=user.email,
                author_name=user.full_name,
            )
            if row["severity"]:
                fb.severity = row["severity"]
            fb.project = project
            db.session.add(fb)
            db.session.flush()
            analysis.try_analyze_feedback(fb, explicit_severity=bool(row["severity"]))
            created_feedback += 1

    db.session.commit()
    click.echo(f"Admin {'created' if admin_new else 'exists'}: {admin.email}")
    click.echo(f"User {'created' if user_new else 'exists'}: {user.email}")
    click.echo(f"Project id={project.id} name={project.name!r} feedback_created={created_feedback}")

@click.group()
def users():
    """User management."""

@users.command("create")
@click.option("--email", required=True)
@click.option("--password", required=True)
@click.option("--first-name", default="")
@click.option("--last-name", default="")
@click.option("--role", type=click.Choice(ROLE_CHOICES), default=ROLE_USER)
@with_appcontext
def users_create(email, password, first_name, last_name, role):
    # fail fast if user exists
    if _find_user(email):
        raise click.ClickException("User already exists")
    if len(password) < 8:
        raise click.ClickException("Password must be at least 8 characters")

    user, _ = _get_or_create_user(email, password, first_name, last_name, role)
    db.session.commit()
    click.echo(f"User created id={user.id} email={user.email} role={role}")

@users.command("set-role")
@click.option("--email", required=True)
@click.option("--role", type=click.Choice(ROLE_CHOICES), required=True)
@with_appcontext
def users_set_role(email, role):
    user = _find_user(email)
    if not user or user.is_deleted:
        raise click.ClickException("User not found")
    user.role = role
    db.session.commit()
    click.echo(f"Set role of {user.email} to {role}")

@click.group()
def feedback():
    """Feedback analysis ops."""

@feedback.command("reanalyze")
@click.option("--all", "reanalyze_all", is_flag=True, help="Re-run analysis for every live feedback item")
@click.option("--no-delay", is_flag=True, help="Skip simulated analysis latency")
@with_appcontext
def feedback_reanalyze(reanalyze_all, no_delay):
    if no_delay:
        current_app.config.update(AI_MOCK_DELAY_MIN=0.0, AI_MOCK_DELAY_MAX=0.0)

    q = db.select(Feedback).where(Feedback.is_deleted.is_(False))
    if not reanalyze_all:
        q = q.where(Feedback.needs_ai_regeneration.is_(True))
    items = db.session.execute(q.order_by(Feedback.id.asc())).scalars().all()

    done = failed = 0
    for fb in items:
        if analysis.try_analyze_feedback(fb) is None:
            failed += 1
        else:
            done += 1
        db.session.commit()
    click.echo(f"Reanalyzed {done} feedback item(s); {failed} failed")

def register_cli(app):
    app.cli.add_command(seed)
    app.cli.add_command(users)
    app.cli.add_command(feedback)
