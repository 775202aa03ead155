import uuid

import pytest
from hypothesis import HealthCheck
from hypothesis import given
from hypothesis import settings

from cardamom import exceptions
from cardamom.card import Card

from .. import format_card
from .. import vcard_payload_strategy


def get_card(id=None, **kw):
    id = id or str(uuid.uuid4())
    return Card(id, format_card(uid=id, **kw))


def assert_cause(excinfo, cls):
    e = excinfo.value
    while e is not None and not isinstance(e, cls):
        e = e.__cause__
    assert e is not None, f"{cls.__name__} not in chain of {excinfo.value!r}"
    return e


class RepositoryTests:
    """Behavior shared by all card repositories.

    Subclasses provide the ``s`` fixture, a fresh and empty repository."""

    @pytest.fixture
    def s(self):
        raise NotImplementedError()

    def test_create_and_read(self, s):
        card = get_card()
        s.create(card)
        assert card.etag

        card2 = s.read(card.id)
        assert card2.id == card.id
        assert card2.raw == card.raw
        assert card2.etag == card.etag
        assert card2.date is not None
        assert card2.date.tzinfo is not None

    def test_read_missing(self, s):
        with pytest.raises(exceptions.OperationError) as excinfo:
            s.read("missing")

        assert str(excinfo.value) == 'cannot read card "missing"'
        assert_cause(excinfo, exceptions.NotFoundError)

    def test_update(self, s):
        card = get_card(r=1)
        s.create(card)
        old_etag = card.etag

        card.raw = format_card(uid=card.id, r=2)
        s.update(card)
        assert card.etag != old_etag

        card2 = s.read(card.id)
        assert card2.raw == card.raw
        assert card2.etag == card.etag

    def test_update_wrong_etag(self, s):
        card = get_card(r=1)
        s.create(card)
        stale = s.read(card.id)

        card.raw = format_card(uid=card.id, r=2)
        s.update(card)

        stale.raw = format_card(uid=card.id, r=3)
        with pytest.raises(exceptions.OperationError) as excinfo:
            s.update(stale)

        assert str(excinfo.value) == f'cannot update card "{card.id}"'
        assert_cause(excinfo, exceptions.PreconditionFailed)
        assert s.read(card.id).raw == card.raw

    def test_delete(self, s):
        card = get_card()
        s.create(card)
        s.delete(card)

        with pytest.raises(exceptions.OperationError):
            s.read(card.id)
        assert s.read_all() == []

    def test_delete_wrong_etag(self, s):
        card = get_card(r=1)
        s.create(card)
        stale = s.read(card.id)
        card.raw = format_card(uid=card.id, r=2)
        s.update(card)

        with pytest.raises(exceptions.OperationError) as excinfo:
            s.delete(stale)

        assert str(excinfo.value) == f'cannot delete card "{card.id}"'
        assert_cause(excinfo, exceptions.PreconditionFailed)
        assert s.read(card.id).raw == card.raw

    def test_delete_missing(self, s):
        card = get_card()
        card.etag = '"whatever"'
        with pytest.raises(exceptions.OperationError) as excinfo:
            s.delete(card)
        assert_cause(excinfo, exceptions.PreconditionFailed)

    def test_read_all_empty(self, s):
        assert s.read_all() == []

    def test_read_all(self, s):
        cards = [get_card(r=i) for i in range(5)]
        for card in cards:
            s.create(card)

        rv = s.read_all()
        assert [c.id for c in rv] == sorted(c.id for c in cards)
        by_id = {c.id: c for c in cards}
        for card in rv:
            assert card.raw == by_id[card.id].raw
            assert card.etag == by_id[card.id].etag
            assert card.date is not None

    def test_read_all_matches_read(self, s):
        for i in range(3):
            s.create(get_card(r=i))

        for card in s.read_all():
            assert s.read(card.id) == card

    def test_special_chars_in_id(self, s):
        card = get_card(id="a+b_c.d-e")
        s.create(card)
        assert s.read("a+b_c.d-e").raw == card.raw
        assert [c.id for c in s.read_all()] == ["a+b_c.d-e"]

    def test_crlf_is_kept(self, s):
        card = get_card()
        assert "\r\n" in card.raw
        s.create(card)
        assert s.read(card.id).raw == card.raw
        (card2,) = s.read_all()
        assert card2.raw == card.raw

    @settings(
        suppress_health_check=[
            HealthCheck.function_scoped_fixture,
            HealthCheck.differing_executors,
        ]
    )
    @given(raw=vcard_payload_strategy)
    def test_payload_roundtrip(self, s, raw):
        card = Card(str(uuid.uuid4()), raw)
        s.create(card)
        assert s.read(card.id).raw == raw
