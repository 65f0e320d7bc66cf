# src/whodb/e2e/matrix/scenarios/ssl_modes.py
"""Login once per SSL mode expected to succeed and check the secure badge."""
from functools import partial

from ..session import login_to_database
from ..ssl import SSLAttempt, plan_ssl_attempts


def login_with_mode(ctx, attempt: SSLAttempt):
    advanced = attempt.advanced()
    login_to_database(ctx.automation, ctx.db, visit_storage_unit=False,
                      user=attempt.user, password=attempt.password, advanced=advanced)
    expected = attempt.expects_secure_indicator
    ctx.wait_for(lambda: ctx.automation.has_secure_connection_indicator() is expected,
                 f"secure connection indicator to be {'shown' if expected else 'absent'} "
                 f"for mode {attempt.mode.mode}")


def ssl_modes(db, group):
    if db.ssl is None or not db.ssl.modes:
        return
    settings = group.settings
    attempts = plan_ssl_attempts(db, settings.cert_container_prefix, settings.cert_host_prefix,
                                 settings.cert_base_dir)
    for attempt in attempts:
        group.add(attempt.name, partial(login_with_mode, attempt=attempt))


def register(matrix):
    matrix.for_each_database("all", ssl_modes, login=False, uses=("ssl",), name="ssl modes")
