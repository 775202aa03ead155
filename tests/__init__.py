"""
Test suite for cardamom.
"""
import hypothesis.strategies as st


def blow_up(*a, **kw):
    raise AssertionError("Did not expect to be called.")


VCARD_TEMPLATE = """BEGIN:VCARD
VERSION:3.0
FN:Cyrus Daboo
N:Daboo;Cyrus;;;
ADR;TYPE=POSTAL:;2822 Email HQ;Suite 2821;RFCVille;PA;15213;USA
EMAIL;TYPE=PREF:cyrus@example.com
NICKNAME:me
NOTE:Example VCard.
ORG:Self Employed
TEL;TYPE=VOICE:412 605 0499
TEL;TYPE=FAX:412 605 0705
URL;VALUE=URI:http://www.example.com
X-SOMETHING:{r}
UID:{uid}
END:VCARD"""


def format_card(uid="test", r=0, newline="\r\n"):
    """A vCard with the given UID, lines joined by ``newline``."""
    return newline.join(VCARD_TEMPLATE.format(uid=uid, r=r).splitlines()) + newline


# Lines of text that survive the trip through an XML document.
printable_characters_strategy = st.text(
    st.characters(blacklist_categories=("Cc", "Cs", "Cn"))
)

vcard_payload_strategy = st.lists(printable_characters_strategy).map(
    lambda lines: "".join(line + "\r\n" for line in ["BEGIN:VCARD"] + lines)
    + "END:VCARD\r\n"
)
