"""Utilities for validating incoming Flask requests."""

from __future__ import annotations

from typing import Iterable

from flask import Request
from werkzeug.datastructures import FileStorage
from werkzeug.exceptions import BadRequest


def parse_json_request(
    req: Request,
    *,
    required_keys: Iterable[str] | None = None,
    allow_empty: bool = False,
) -> dict:
    """Return the parsed JSON body or raise a 400 error."""

    if not req.is_json:
        raise BadRequest("Request content type must be application/json.")

    data = req.get_json(silent=True)
    if data is None:
        raise BadRequest("Request JSON body is required.")

    if not isinstance(data, dict):
        raise BadRequest("Request JSON payload must be an object.")

    if not data and not allow_empty:
        raise BadRequest("Request JSON body must not be empty.")

    if required_keys:
        missing = [key for key in required_keys if not data.get(key)]
        if missing:
            raise BadRequest(
                "Missing required fields: {}.".format(", ".join(sorted(missing)))
            )

    return data


def parse_form_or_json_request(
    req: Request, *, file_field: str
) -> tuple[dict, FileStorage | None]:
    """Return ``(fields, file)`` from a multipart form, or ``(json, None)``.

    The file is None when the form carries no upload under ``file_field``.
    """

    if req.mimetype != "multipart/form-data":
        return parse_json_request(req), None

    data = req.form.to_dict()
    upload = req.files.get(file_field)
    if upload is None or not upload.filename:
        upload = None
    if not data and upload is None:
        raise BadRequest("Request form body must not be empty.")
    return data, upload
