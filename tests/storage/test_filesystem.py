import os

import pytest

from cardamom import exceptions
from cardamom.card import Card
from cardamom.storage.filesystem import FilesystemRepository

from .. import format_card
from . import RepositoryTests
from . import assert_cause
from . import get_card


class TestFilesystemRepository(RepositoryTests):
    @pytest.fixture
    def s(self, tmpdir):
        return FilesystemRepository(str(tmpdir))

    def test_is_not_directory(self, tmpdir):
        with pytest.raises(OSError):
            f = tmpdir.join("hue")
            f.write("stub")
            FilesystemRepository(str(tmpdir) + "/hue")

    def test_missing_directory(self, tmpdir):
        with pytest.raises(exceptions.UserError):
            FilesystemRepository(str(tmpdir.join("missing")))

    def test_create_directory(self, tmpdir):
        FilesystemRepository(str(tmpdir.join("a/b")), create=True)
        assert tmpdir.join("a/b").check(dir=True)

    @pytest.mark.parametrize("id", ["../secret", "sub/secret", "a\0b"])
    def test_id_stays_inside_directory(self, tmpdir, id):
        contacts = tmpdir.mkdir("contacts")
        secret = tmpdir.join("secret.vcf")
        secret.write_binary(format_card(uid="secret").encode("utf-8"))
        tmpdir.mkdir("contacts/sub").join("secret.vcf").write("stub")
        s = FilesystemRepository(str(contacts))

        with pytest.raises(exceptions.OperationError) as excinfo:
            s.read(id)
        assert_cause(excinfo, exceptions.InvalidCardId)

        with pytest.raises(exceptions.OperationError) as excinfo:
            s.create(Card(id, format_card(uid="x")))
        assert_cause(excinfo, exceptions.InvalidCardId)

        for op in (s.update, s.delete):
            with pytest.raises(exceptions.OperationError) as excinfo:
                op(Card(id, format_card(uid="x")))
            assert_cause(excinfo, exceptions.InvalidCardId)

        assert secret.check()
        assert secret.read_binary() == format_card(uid="secret").encode("utf-8")
        assert not tmpdir.join("x.vcf").check()
        assert sorted(f.basename for f in tmpdir.listdir()) == [
            "contacts",
            "secret.vcf",
        ]

    def test_empty_id(self, s):
        with pytest.raises(exceptions.OperationError) as excinfo:
            s.read("")
        assert_cause(excinfo, exceptions.InvalidCardId)

    def test_file_layout(self, s, tmpdir):
        card = get_card(id="foo")
        s.create(card)
        (card_file,) = tmpdir.listdir()
        assert card_file.basename == "foo.vcf"
        assert card_file.read_binary() == card.raw.encode("utf-8")

    def test_create_existing(self, s):
        card = get_card()
        s.create(card)
        with pytest.raises(exceptions.OperationError) as excinfo:
            s.create(Card(card.id, card.raw))
        assert str(excinfo.value) == f'cannot create card "{card.id}"'
        assert_cause(excinfo, exceptions.PreconditionFailed)

    def test_changes_by_others_are_noticed(self, s, tmpdir):
        card = get_card(id="foo", r=1)
        s.create(card)

        # Another program replaces the file.
        other = tmpdir.join("other")
        other.write_binary(format_card(uid="foo", r=2).encode("utf-8"))
        os.rename(str(other), str(tmpdir.join("foo.vcf")))

        card.raw = format_card(uid="foo", r=3)
        with pytest.raises(exceptions.OperationError) as excinfo:
            s.update(card)
        assert_cause(excinfo, exceptions.PreconditionFailed)

    def test_update_without_etag(self, s):
        card = get_card(id="foo", r=1)
        s.create(card)
        s.update(Card("foo", format_card(uid="foo", r=2)))
        assert s.read("foo").raw == format_card(uid="foo", r=2)

    def test_update_missing(self, s):
        with pytest.raises(exceptions.OperationError) as excinfo:
            s.update(get_card(id="foo"))
        assert_cause(excinfo, exceptions.NotFoundError)
        assert not os.path.exists(os.path.join(s.path, "foo.vcf"))

    def test_ignore_other_files(self, s, tmpdir):
        s.create(get_card(id="foo"))
        tmpdir.join("foo.vcf.tmp").write("stub")
        tmpdir.join(".vcf").write("stub")
        tmpdir.mkdir("bar.vcf")
        assert [c.id for c in s.read_all()] == ["foo"]

    def test_date_is_mtime(self, s, tmpdir):
        s.create(get_card(id="foo"))
        os.utime(str(tmpdir.join("foo.vcf")), (0, 86400))
        card = s.read("foo")
        assert card.date.timestamp() == 86400
        assert card.date.tzinfo is not None

    def test_expands_user(self, monkeypatch, tmpdir):
        monkeypatch.setenv("HOME", str(tmpdir))
        tmpdir.mkdir("contacts")
        s = FilesystemRepository("~/contacts")
        assert s.path == str(tmpdir.join("contacts"))
