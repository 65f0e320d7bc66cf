# src/whodb/e2e/matrix/scenarios/profiles.py
from functools import partial

from ..session import login_to_database


def shows_current_profile(ctx):
    current = ctx.automation.current_profile()
    assert current is not None, "A profile should be active after login"
    assert current in ctx.automation.profiles(), f"Active profile {current!r} is not listed"


def switches_profiles(ctx):
    profiles = ctx.automation.profiles()
    if len(profiles) < 2:
        ctx.skip("only one profile exists")
    current = ctx.automation.current_profile()
    other = next(name for name in profiles if name != current)
    ctx.automation.switch_profile(other)
    ctx.wait_for(lambda: ctx.automation.current_profile() == other, f"profile {other!r} to become active")
    ctx.automation.switch_profile(current)
    ctx.wait_for(lambda: ctx.automation.current_profile() == current, f"profile {current!r} to become active")


def adds_another_profile(ctx, other_id: str):
    before = len(ctx.automation.profiles())
    other = ctx.store.get_database_config(other_id) if ctx.store else None
    if other is None:
        ctx.skip(f"database {other_id} is not loaded")
    login_to_database(ctx.automation, other, visit_storage_unit=False)
    ctx.wait_for(lambda: len(ctx.automation.profiles()) > before, "a second profile to be listed")
    profiles = ctx.automation.profiles()
    assert len(profiles) >= 2, f"Expected at least two profiles, got {profiles}"


def profiles(db, group):
    with group.describe("Profile Display"):
        group.add("shows the current profile", shows_current_profile)
    with group.describe("Profile Switching"):
        group.add("can switch between profiles when multiple exist", switches_profiles)
    other = next((candidate for candidate in group.store.by_category("sql") if candidate.id != db.id), None)
    with group.describe("Multiple Profiles"):
        if other is None:
            group.skip("adds a profile for another database", "no second sql database is configured")
        else:
            group.add("adds a profile for another database", partial(adds_another_profile, other_id=other.id))


def register(matrix):
    matrix.for_each_database("sql", profiles)
