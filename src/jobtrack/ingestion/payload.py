"""Webhook body parsing.

The field platform posts an XML document per submission::

    <submission-notification>
      <dispatch-item><id>11</id></dispatch-item>
      <form><id>5695685</id><name>Emissions</name><guid>...</guid></form>
      <submission><id>42</id><guid>sub-1</guid></submission>
    </submission-notification>
"""

from __future__ import annotations

import xml.etree.ElementTree as ET

from jobtrack.exceptions import MalformedPayloadError
from jobtrack.ingestion.normalize import safe_str
from jobtrack.models.notification import SubmissionNotification

ROOT_TAG = "submission-notification"


def _text(root: ET.Element, path: str) -> str | None:
    element = root.find(path)
    if element is None:
        return None
    return safe_str(element.text)


def parse_notification(body: str | bytes) -> SubmissionNotification:
    """Parse a ``submission-notification`` document.

    Raises :class:`MalformedPayloadError` when the body is not XML, has a
    different root, or lacks the form id or a submission identifier.
    """
    if not body or not body.strip():
        raise MalformedPayloadError("Empty notification body")
    try:
        root = ET.fromstring(body)
    except ET.ParseError as exc:
        raise MalformedPayloadError(f"Notification body is not XML: {exc}") from exc

    if root.tag != ROOT_TAG:
        raise MalformedPayloadError(f"Unexpected root element <{root.tag}>")

    form_id = _text(root, "form/id")
    if form_id is None:
        raise MalformedPayloadError("Notification has no form id")

    submission_id = _text(root, "submission/id")
    submission_guid = _text(root, "submission/guid")
    if submission_id is None and submission_guid is None:
        raise MalformedPayloadError("Notification has no submission id or guid")

    return SubmissionNotification(
        form_id=form_id,
        submission_id=submission_id or submission_guid,
        submission_guid=submission_guid,
        form_name=_text(root, "form/name"),
        form_guid=_text(root, "form/guid"),
        dispatch_item_id=_text(root, "dispatch-item/id"),
    )
