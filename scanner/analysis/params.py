"""Parameter Enumeration - Query, cookie and form parameters of a request."""

from common.constants import ParamSource
from common.models import Parameter, RequestSpec, ResponseSpec
from common.utils.http import build_endpoint, normalize_content_type
from common.utils.query import parse_cookie_header, parse_query_string
from scanner.stores import ParamStore

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def enumerate_parameters(
    request: RequestSpec,
    response: ResponseSpec,
    store: ParamStore | None = None,
    track: bool = True,
) -> list[Parameter]:
    """
    List the parameters carried by a request.

    Args:
        request: Request whose parameters are enumerated
        response: Response the request produced (its code is part of identity)
        store: Tested-parameter store
        track: Skip and record parameters already tested on this endpoint

    Returns:
        Parameters in query, cookie, body order
    """
    method = request.get_method().upper()
    code = response.get_code()
    raw: list[tuple[str, str, str]] = []

    for key, value in parse_query_string(request.get_query()):
        raw.append((key, value, ParamSource.URL))

    cookies = request.get_header("Cookie")
    if cookies:
        for key, value in parse_cookie_header("; ".join(cookies)):
            raw.append((key, value, ParamSource.COOKIE))

    if method == "POST" and request.get_body():
        content_type = normalize_content_type(request.get_header("Content-Type"))
        if content_type in (None, FORM_CONTENT_TYPE):
            for key, value in parse_query_string(request.get_body()):
                raw.append((key, value, ParamSource.BODY))

    endpoint = build_endpoint(request.get_tls(), request.get_host(), request.get_path())
    params: list[Parameter] = []
    for key, value, source in raw:
        param = Parameter(key=key, value=value, source=source, method=method, code=code)
        if track and store is not None and not store.add(endpoint, param):
            continue
        params.append(param)
    return params
