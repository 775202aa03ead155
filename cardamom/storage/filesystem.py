import errno
import logging
import os
from datetime import datetime

from atomicwrites import atomic_write

from .. import exceptions
from ..card import Card
from ..utils import checkdir
from ..utils import expand_path
from ..utils import get_etag_from_file
from .base import CardRepository
from .base import id_from_href

logger = logging.getLogger(__name__)


class FilesystemRepository(CardRepository):

    """
    Cards stored as a vdir: one ``{id}.vcf`` file per card in a single
    directory. The etag of a card is derived from the modification time and
    inode of its file, so any change made by another program is noticed.

    :param path: The directory holding the cards.
    :param encoding: Encoding of the files.
    :param create: Create the directory if it doesn't exist.
    """

    _repr_attributes = ["path"]

    def __init__(self, path, encoding="utf-8", create=False):
        path = expand_path(path)
        checkdir(path, create=create)
        self.path = path
        self.encoding = encoding

    def _get_filepath(self, id):
        # Ids name files directly inside the directory.
        seps = [sep for sep in (os.sep, os.altsep, "\0") if sep]
        if not id or any(sep in id for sep in seps):
            raise exceptions.InvalidCardId(f"invalid card id {id!r}")
        return os.path.join(self.path, self._get_href(id))

    def _read_file(self, id, fpath):
        with open(fpath, "rb") as f:
            raw = f.read().decode(self.encoding)
            etag = get_etag_from_file(f)
            mtime = os.fstat(f.fileno()).st_mtime
        date = datetime.fromtimestamp(mtime).astimezone()
        return Card(id, raw, etag=etag, date=date)

    def _check_etag(self, card, fpath):
        if not os.path.isfile(fpath):
            raise exceptions.NotFoundError(f"{fpath} does not exist.")
        if card.etag:
            actual_etag = get_etag_from_file(fpath)
            if card.etag != actual_etag:
                raise exceptions.PreconditionFailed(
                    f"Wrong etag: expected {card.etag}, found {actual_etag}."
                )

    def _write(self, card, fpath, overwrite):
        with atomic_write(fpath, mode="wb", overwrite=overwrite) as f:
            f.write(card.raw.encode(self.encoding))
            card.etag = get_etag_from_file(f)

    def create(self, card):
        try:
            fpath = self._get_filepath(card.id)
            self._write(card, fpath, overwrite=False)
        except (OSError, exceptions.Error) as e:
            if getattr(e, "errno", None) == errno.EEXIST:
                e = exceptions.PreconditionFailed(f"{fpath} already exists.")
            raise exceptions.OperationError(f'cannot create card "{card.id}"') from e

    def read(self, id):
        try:
            fpath = self._get_filepath(id)
            return self._read_file(id, fpath)
        except (OSError, exceptions.Error) as e:
            if getattr(e, "errno", None) == errno.ENOENT:
                e = exceptions.NotFoundError(f"{fpath} does not exist.")
            raise exceptions.OperationError(f'cannot read card "{id}"') from e

    def read_all(self):
        cards = []
        try:
            for fname in sorted(os.listdir(self.path)):
                id = id_from_href(fname, self.fileext)
                fpath = os.path.join(self.path, fname)
                if id is None or not os.path.isfile(fpath):
                    logger.debug(f"Skipping {fname!r}, not a card.")
                    continue
                cards.append(self._read_file(id, fpath))
        except OSError as e:
            raise exceptions.OperationError("cannot list cards") from e
        return sorted(cards, key=lambda card: card.id)

    def update(self, card):
        try:
            fpath = self._get_filepath(card.id)
            self._check_etag(card, fpath)
            self._write(card, fpath, overwrite=True)
        except (OSError, exceptions.Error) as e:
            raise exceptions.OperationError(f'cannot update card "{card.id}"') from e

    def delete(self, card):
        try:
            fpath = self._get_filepath(card.id)
            self._check_etag(card, fpath)
            os.remove(fpath)
        except (OSError, exceptions.Error) as e:
            raise exceptions.OperationError(f'cannot delete card "{card.id}"') from e
