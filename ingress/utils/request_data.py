# utils/request_data.py
"""
Request body helpers shared by the JSON blueprints.
"""

from flask import request


def json_body():
    """Return the JSON request body as a dict. Arrays, strings and unparsable bodies give {}."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}
