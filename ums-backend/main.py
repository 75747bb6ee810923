import click

from config import BACKUP_DIR, DATA_DIR, DEFAULT_ADMIN_USERNAME
from db_manager import DatabaseManager
from security import verify_password
from seed import SEED_PASSWORD, SEED_USERS, seed_data


@click.group()
@click.option("--data-dir", default=DATA_DIR, show_default=True, help="Directory holding the record files.")
@click.pass_context
def cli(ctx, data_dir):
    """University Management System records backend"""
    ctx.obj = DatabaseManager(base_dir=data_dir)


@cli.command()
@click.pass_obj
def seed(db: DatabaseManager):
    """Load the demo dataset"""
    click.echo("Seeding test data...")
    if seed_data(db):
        click.echo("Test data seeded successfully!")
    else:
        click.echo("Test data seeded but could not be saved.")


@cli.command()
@click.pass_obj
def stats(db: DatabaseManager):
    """Print record counts"""
    click.echo("=== REPORTS ===")
    for key, value in db.get_database_stats().items():
        click.echo(f"{key}: {value}")


@cli.command()
@click.option("--backup-dir", default=BACKUP_DIR, show_default=True)
@click.pass_obj
def backup(db: DatabaseManager, backup_dir):
    """Copy the data directory to a timestamped backup"""
    path = db.backup_data(backup_dir)
    click.echo(f"Data backed up to {path}")


@cli.command()
@click.pass_obj
def check(db: DatabaseManager):
    """Seed, then run sanity checks over the store"""
    seed_data(db)
    click.echo("=== RUNNING CHECKS ===")

    results = []

    admin = db.find_user(DEFAULT_ADMIN_USERNAME)
    results.append(("Admin user exists", bool(admin and admin.role == "admin")))
    results.append(("Users created", len(db.users) >= len(SEED_USERS) + 1))
    results.append(("Courses created", len(db.courses) >= 2))
    results.append(("Enrollments created", len(db.enrollments) >= 4))

    teacher = db.find_user("teacher1")
    results.append(("Password hashing works", bool(teacher and verify_password(SEED_PASSWORD, teacher.password_hash))))

    reloaded = DatabaseManager(base_dir=db.base_dir)
    results.append(("File I/O round trip", reloaded.get_database_stats()["total_grades"] == len(db.grades)))

    for label, ok in results:
        click.echo(f"{'✅' if ok else '❌'} {label}")
    click.echo("All checks completed!")


if __name__ == "__main__":
    cli()
