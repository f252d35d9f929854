import hashlib

from jiralert.core.template import Renderer
from jiralert.schemas import Notification, sorted_pairs

_SHORT_ESCAPES = {
    "\a": "\\a",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
    "\v": "\\v",
    '"': '\\"',
    "\\": "\\\\",
}


def _escape(ch: str) -> str:
    if ch in _SHORT_ESCAPES:
        return _SHORT_ESCAPES[ch]
    if ch.isprintable():
        return ch
    code = ord(ch)
    if code < 0x20 or code == 0x7F:
        return f"\\x{code:02x}"
    if code < 0x10000:
        return f"\\u{code:04x}"
    return f"\\U{code:08x}"


def quote_label_value(value: str) -> str:
    """Double-quote a label value the way Go's ``%q`` verb does.

    Printable characters (non-ASCII included) are kept as is; control and
    other non-printable characters become ``\\xNN``, ``\\uNNNN`` or
    ``\\UNNNNNNNN``. Labels written by earlier jiralert releases used this
    quoting, so it must not change or existing issues stop matching.
    """
    return '"' + "".join(_escape(ch) for ch in value) + '"'


def format_label(name: str, value: str) -> str:
    """Render a label pair as a Jira label: ``name="value"`` with no spaces."""
    return f"{name}={quote_label_value(value)}".replace(" ", "")


def group_ticket_label(labels: dict[str, str], hashed: bool = False) -> str:
    """Derive the identity label of an alert group from its group labels.

    Two forms exist:
        - legacy: ``ALERT{name="value",...}`` with all spaces removed
        - hashed: ``JIRALERT{<sha512 hex>}`` over the same pairs; always 138
          characters, which keeps it under Jira's 255 character label limit
          no matter how many group labels there are

    Pairs are sorted by label name, so the result only depends on the
    label set, never on the order Alertmanager happened to send it in.
    """
    pairs = sorted_pairs(labels)

    if hashed:
        digest = hashlib.sha512()
        for name, value in pairs:
            digest.update(f"{name}={quote_label_value(value)},".encode())
        return f"JIRALERT{{{digest.hexdigest()}}}"

    body = ",".join(f"{name}={quote_label_value(value)}" for name, value in pairs)
    return f"ALERT{{{body}}}".replace(" ", "")


def issue_identifier_label(
    data: Notification,
    renderer: Renderer,
    template: str | None = None,
    hashed: bool = False,
) -> str:
    """Identity label for a notification.

    A receiver-level ``issue_identifier_label`` template takes precedence over
    the group-label derivation; its output has spaces stripped.

    Raises:
        RenderError: If the template fails to render.
    """
    if not template:
        return group_ticket_label(data.group_labels, hashed)

    label = renderer.render(template, data, what="issue identifier label")
    return label.replace(" ", "")
