from flask import Blueprint, request, current_app, g

from .errors import success_response
from utils.csrf import generate_csrf_token, set_csrf_cookie

bp = Blueprint("csrf", __name__)


@bp.get("/csrf-token")
def get_csrf_token():
    """
    Issue (or return the existing) CSRF token and set the XSRF-TOKEN cookie.
    Send the value back in the X-XSRF-TOKEN header on POST/PUT/PATCH/DELETE
    requests that are not authenticated with a bearer token.
    ---
    tags:
      - Security
    responses:
      200:
        description: OK
        schema:
          type: object
          properties:
            success: { type: boolean }
            data:
              type: object
              properties:
                csrfToken: { type: string }
    """
    token = request.cookies.get(current_app.config["CSRF_COOKIE_NAME"]) or generate_csrf_token()
    response, status = success_response({"csrfToken": token})
    set_csrf_cookie(response, token, current_app.config)
    g.csrf_cookie_set = True
    return response, status
