# library_service/tasks/reservation_sweep.py
import click
from flask import current_app
from flask.cli import with_appcontext

from library_service.services.reservation_service import ReservationService


def run_expiry_sweep_job(app, now=None) -> int:
    """
    Deactivates reservations whose expiry date has passed.
    - Triggered from outside, e.g. cron running `flask expire-reservations`
    - Book counters are untouched: reservations never held a copy
    """
    with app.app_context():
        try:
            count = ReservationService.expire_stale(now)
        except Exception as e:
            current_app.logger.exception(f"[expiry_sweep] failed: {e}")
            raise
        return count


@click.command("expire-reservations")
@with_appcontext
def expire_reservations_command():
    """Deactivate every active reservation past its expiry date."""
    count = run_expiry_sweep_job(current_app._get_current_object())
    click.echo(f"Deactivated {count} expired reservation(s).")
