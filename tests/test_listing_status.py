import pytest

from phone_market.services.listing_status import AVAILABLE, RESERVED, SOLD, resolve_listing_status
from phone_market.services.listings import get_listing_with_status, list_listings


@pytest.mark.parametrize(
    "statuses,expected",
    [
        ((), AVAILABLE),
        (("pending",), AVAILABLE),
        (("canceled", "pending"), AVAILABLE),
        (("pending", "reserved"), RESERVED),
        (("reserved", "canceled"), RESERVED),
        (("reserved", "sold"), SOLD),
        (("sold",), SOLD),
        (("canceled", "sold", "pending"), SOLD),
    ],
)
def test_resolve_listing_status(statuses, expected):
    assert resolve_listing_status(statuses) == expected


COMBINATIONS = [
    (),
    ("pending",),
    ("canceled",),
    ("pending", "canceled"),
    ("reserved",),
    ("reserved", "pending"),
    ("sold",),
    ("reserved", "sold"),
    ("sold", "canceled", "pending"),
]


@pytest.mark.asyncio
async def test_sql_status_matches_resolver(db_session, make_listing):
    expected = {}
    for statuses in COMBINATIONS:
        code = await make_listing(booking_statuses=statuses)
        expected[code] = resolve_listing_status(statuses)

    rows = await list_listings(db_session, include_sold=True, all_rows=True)
    assert {listing.code: status for listing, status in rows} == expected

    for code, status in expected.items():
        _, resolved = await get_listing_with_status(db_session, code)
        assert resolved == status


@pytest.mark.asyncio
async def test_list_filters(db_session, make_listing):
    available = await make_listing()
    reserved = await make_listing(booking_statuses=("reserved",))
    sold = await make_listing(booking_statuses=("sold",))

    default = {l.code for l, _ in await list_listings(db_session)}
    assert default == {available, reserved}

    with_sold = {l.code for l, _ in await list_listings(db_session, include_sold=True)}
    assert with_sold == {available, reserved, sold}

    only_sold = [(l.code, s) for l, s in await list_listings(db_session, status="SOLD")]
    assert only_sold == [(sold, SOLD)]

    only_reserved = [l.code for l, _ in await list_listings(db_session, status="reserved")]
    assert only_reserved == [reserved]

    # unknown filters are ignored
    unknown = {l.code for l, _ in await list_listings(db_session, status="bogus")}
    assert unknown == {available, reserved}


@pytest.mark.asyncio
async def test_list_limit_and_order(db_session, make_listing):
    codes = [await make_listing() for _ in range(4)]

    limited = [l.code for l, _ in await list_listings(db_session, limit=2)]
    assert limited == sorted(codes, reverse=True)[:2]

    # a limit below one is clamped
    assert len(await list_listings(db_session, limit=0)) == 1
    assert len(await list_listings(db_session, limit=1, all_rows=True)) == 4
