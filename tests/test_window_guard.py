from datetime import datetime, timedelta, timezone

import pytest

from app.errors import Forbidden, NotActive, NotFound
from app.models.user import UserRole
from app.services.window_guard import check_window, ensure_can_submit

from factories import make_contest, make_user

START = datetime(2030, 1, 1, 10, 0, 0)
END = datetime(2030, 1, 1, 12, 0, 0)


@pytest.mark.anyio
async def test_unknown_contest_is_not_found(session):
    user = await make_user(session)
    with pytest.raises(NotFound) as exc_info:
        await ensure_can_submit(session, "missing", user)
    assert exc_info.value.code == "CONTEST_NOT_FOUND"


@pytest.mark.anyio
@pytest.mark.parametrize(
    "now",
    [START - timedelta(seconds=1), END + timedelta(seconds=1)],
)
async def test_outside_window_is_rejected(session, now):
    creator = await make_user(session, role=UserRole.CREATOR)
    player = await make_user(session)
    contest = await make_contest(session, creator, start=START, end=END)

    with pytest.raises(NotActive) as exc_info:
        await ensure_can_submit(session, contest.id, player, now=now)
    assert exc_info.value.code == "CONTEST_NOT_ACTIVE"


@pytest.mark.anyio
@pytest.mark.parametrize("now", [START, END, START + timedelta(minutes=30)])
async def test_window_boundaries_are_inclusive(session, now):
    creator = await make_user(session, role=UserRole.CREATOR)
    player = await make_user(session)
    contest = await make_contest(session, creator, start=START, end=END)

    assert (await ensure_can_submit(session, contest.id, player, now=now)).id == contest.id


@pytest.mark.anyio
async def test_creator_cannot_compete_in_own_contest(session):
    creator = await make_user(session, role=UserRole.CREATOR)
    contest = await make_contest(session, creator, start=START, end=END)

    with pytest.raises(Forbidden):
        await ensure_can_submit(session, contest.id, creator, now=START)


@pytest.mark.anyio
async def test_other_creators_may_compete(session):
    owner = await make_user(session, role=UserRole.CREATOR)
    rival = await make_user(session, role=UserRole.CREATOR)
    contest = await make_contest(session, owner, start=START, end=END)

    await ensure_can_submit(session, contest.id, rival, now=START)


@pytest.mark.anyio
async def test_closed_window_wins_over_role_check(session):
    creator = await make_user(session, role=UserRole.CREATOR)
    contest = await make_contest(session, creator, start=START, end=END)

    with pytest.raises(NotActive):
        await ensure_can_submit(session, contest.id, creator, now=END + timedelta(days=1))


def test_aware_timestamps_are_compared_in_utc():
    contest = type("C", (), {"start_time": START, "end_time": END, "creator_id": "owner"})()
    player = type("U", (), {"id": "player"})()

    # 11:00 UTC expressed as 13:00 at UTC+2
    plus_two = timezone(timedelta(hours=2))
    check_window(contest, player, now=datetime(2030, 1, 1, 13, 0, tzinfo=plus_two))

    with pytest.raises(NotActive):
        check_window(contest, player, now=datetime(2030, 1, 1, 13, 0, tzinfo=timezone.utc))
