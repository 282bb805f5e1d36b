from fastapi import Header, HTTPException, Request


async def verify_api_key(request: Request, x_api_key: str | None = Header(default=None)) -> None:
    """Verify the X-Api-Key header when API_SERVER_API_KEY is configured.

    Without a configured key the API is open (e.g. behind a trusted reverse proxy).

    Raises:
        HTTPException: 401 if a key is configured and the header is missing or wrong.
    """
    helper_config = request.app.state.helper_config
    expected_key = helper_config.get_string_val("API_SERVER_API_KEY", default="")
    if expected_key and x_api_key != expected_key:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
