from abc import ABCMeta
from abc import abstractmethod
from typing import List
from typing import Optional

from ..card import Card


class CardRepository(metaclass=ABCMeta):

    """Interface that both card repositories implement: the local vdir and
    the remote CardDAV addressbook. Exactly one of them is chosen per account,
    see :py:func:`cardamom.cli.utils.repository_from_account`.

    Terminology:
      - ID: String; key of a card inside the repository, the resource name
          without the ``.vcf`` extension.
      - ETAG: String; Opaque version token of a card, changes when the card
          does. Sent back on update and delete so that changes made by
          somebody else are not silently overwritten.

    All methods fail with a subclass of :py:class:`cardamom.exceptions.Error`
    describing what was attempted, with the underlying error as its cause.
    """

    fileext = ".vcf"

    # The attribute values to show in the representation of the repository.
    _repr_attributes: List[str] = []

    @abstractmethod
    def create(self, card: Card) -> None:
        """Store a new card. ``card.etag`` is set to the new etag if the
        repository returns one, otherwise it's left untouched."""

    @abstractmethod
    def read(self, id: str) -> Card:
        """Fetch a single card with its etag and modification date."""

    @abstractmethod
    def read_all(self) -> List[Card]:
        """Fetch all cards, sorted by id."""

    @abstractmethod
    def update(self, card: Card) -> None:
        """Replace an existing card.

        If ``card.etag`` is set, the update only happens if the stored card
        still has that etag. ``card.etag`` is refreshed like in
        :py:meth:`create`."""

    @abstractmethod
    def delete(self, card: Card) -> None:
        """Remove a card, under the same etag condition as :py:meth:`update`."""

    def _get_href(self, id: str) -> str:
        return id + self.fileext

    def __repr__(self):
        return "<{}({})>".format(
            self.__class__.__name__,
            ", ".join(f"{x}={getattr(self, x, None)!r}" for x in self._repr_attributes),
        )


def id_from_href(href: str, fileext: str = ".vcf") -> Optional[str]:
    """Return the card id for the last segment of ``href``, or ``None`` if
    it's not a card resource."""
    name = href.rstrip("/").rsplit("/", 1)[-1]
    if not name.endswith(fileext) or len(name) == len(fileext):
        return None
    return name[: -len(fileext)]
