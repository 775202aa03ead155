from .utils import generate_href


def _get_property(raw, key):
    """Return the unfolded value of the first ``key`` property in ``raw``.

    The payload is not parsed into components; properties of nested
    components are found just as well, which is fine for vCards.

    :raises KeyError: if the property is missing.
    """
    key = key.upper()
    prefix_without_params = f"{key}:"
    prefix_with_params = f"{key};"
    iterlines = iter(raw.splitlines())
    for line in iterlines:
        upper = line.upper()
        if upper.startswith(prefix_without_params):
            rv = line[len(prefix_without_params) :]
            break
        elif upper.startswith(prefix_with_params):
            rv = line[len(prefix_with_params) :].split(":", 1)[-1]
            break
    else:
        raise KeyError(key)

    for line in iterlines:
        if line.startswith((" ", "\t")):
            rv += line[1:]
        else:
            break

    return rv


def _get_value(raw, key):
    try:
        return _get_property(raw, key).strip() or None
    except KeyError:
        return None


class Card:
    """
    A single contact as exchanged with a repository.

    :param id: Stable key of the card, used as file name without extension.
    :param raw: The complete vCard payload, line endings untouched.
    :param etag: Version token assigned by the repository. ``None`` until the
        card was first saved, or if the server never hands one out. Never
        invented locally.
    :param date: Timezone-aware time of the last modification. Always set on
        cards returned by ``read``.
    """

    def __init__(self, id, raw, etag=None, date=None):
        if not id:
            raise ValueError("A card needs a non-empty id.")
        assert isinstance(raw, str), type(raw)
        self.id = id
        self.raw = raw
        self.etag = etag
        self.date = date

    @classmethod
    def new(cls, raw):
        """A card that wasn't saved yet. Its id is the UID of the vCard if
        that's safe to use in URLs and file names, a random UUID otherwise."""
        return cls(generate_href(_get_value(raw, "UID")), raw)

    @property
    def uid(self):
        """The ``UID`` property of the payload, or ``None``."""
        return _get_value(self.raw, "UID")

    @property
    def name(self):
        """The formatted name (``FN``) of the contact, or ``None``."""
        return _get_value(self.raw, "FN")

    def __eq__(self, other):
        return (
            isinstance(other, Card)
            and self.id == other.id
            and self.etag == other.etag
            and self.date == other.date
            and self.raw == other.raw
        )

    def __repr__(self):
        return f"<Card {self.id!r} etag={self.etag!r}>"
